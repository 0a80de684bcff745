import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest
from PIL import Image, PngImagePlugin


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
non_utf8_paths = pytest.mark.skipif(
    sys.platform != "linux" or sys.getfilesystemencoding() != "utf-8",
    reason="needs a filesystem that accepts arbitrary bytes in names",
)


def make_png(path: Path, size=(40, 30), caption=None, color="red"):
    """Write a small PNG, optionally with a Description text chunk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    info = None
    if caption is not None:
        info = PngImagePlugin.PngInfo()
        info.add_text("Description", caption)
    Image.new("RGB", size, color).save(path, "PNG", pnginfo=info)
    return path


def make_jpeg(path: Path, size=(40, 30), description=None, orientation=None):
    path.parent.mkdir(parents=True, exist_ok=True)
    exif = Image.Exif()
    if description is not None:
        exif[0x010E] = description
    if orientation is not None:
        exif[0x0112] = orientation
    Image.new("RGB", size, "blue").save(path, "JPEG", exif=exif)
    return path


class GitRepo:
    """A throwaway repository with predictable authors and dates."""

    def __init__(self, path: Path):
        self.path = path
        self._day = 0
        self.env = dict(os.environ)
        self.env.update({
            "GIT_AUTHOR_NAME": "Ada Lovelace",
            "GIT_AUTHOR_EMAIL": "ada@example.com",
            "GIT_COMMITTER_NAME": "Ada Lovelace",
            "GIT_COMMITTER_EMAIL": "ada@example.com",
            "GIT_CONFIG_NOSYSTEM": "1",
            "GIT_CONFIG_GLOBAL": os.devnull,
            "HOME": str(path),
        })
        path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")

    def git(self, *args) -> str:
        result = subprocess.run(
            ["git", "-c", "commit.gpgsign=false", *args],
            cwd=self.path,
            env=self.env,
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout

    def commit(self, message, files=None, remove=()) -> str:
        """Write files (name -> bytes or callable(path)), stage everything, commit."""
        for name, content in (files or {}).items():
            target = self.path / name
            target.parent.mkdir(parents=True, exist_ok=True)
            if callable(content):
                content(target)
            elif isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content)
        for name in remove:
            (self.path / name).unlink()
        self._day += 1
        date = f"2024-03-{self._day:02d}T12:00:00+02:00"
        self.env["GIT_AUTHOR_DATE"] = date
        self.env["GIT_COMMITTER_DATE"] = date
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "--cleanup=verbatim", "-m", message)
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def repo(tmp_path):
    return GitRepo(tmp_path / "repo")


@pytest.fixture
def photo_repo(repo):
    """Root commit with an image, then a mix of image, text and [ignore] commits."""
    repo.commit("Initial import", {"first.png": make_png})
    repo.commit(
        "Sunset at the pier\n\nWent down to the pier\nafter work.\n\nThe light was great.",
        {"photos/sunset.png": lambda p: make_png(p, (64, 48), caption="Pier at dusk")},
    )
    repo.commit("Update readme", {"README.md": "hello\n"})
    repo.commit("[ignore] scratch upload", {"photos/scratch.png": make_png})
    repo.commit(
        "Two from the hike",
        {
            "photos/hike/ridge.jpg": lambda p: make_jpeg(p, (30, 20), description="The ridge"),
            "photos/hike/lake.png": lambda p: make_png(p, (20, 30), color="green"),
            "notes.txt": "trail notes\n",
        },
    )
    return repo
