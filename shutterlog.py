# /// script
# dependencies = ["pillow", "jinja2", "httpx"]
# ///
"""
Shutterlog: Build a static photo blog from a git repository's history.

Usage:
    uv run --script shutterlog.py [--layout blog|gallery] [--branch main]

Run it from inside a git working copy. Every commit that touches an image
becomes a post (or, with --layout gallery, every image becomes a tile).
Commits whose title starts with [ignore] are skipped. Outputs a static site
to ./dist/
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import re
import shutil
import subprocess
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Generic, Optional, TypeVar
from urllib.parse import quote

import httpx
from PIL import Image
from jinja2 import Environment
from markupsafe import Markup

_jinja_env = Environment(autoescape=True)
Template = _jinja_env.from_string

# paths may carry surrogate escapes for bytes that are not UTF-8
_jinja_env.filters["urlpath"] = lambda path: quote(os.fsencode(path))

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_BRANCH = "main"
DEFAULT_MAX_POSTS = 50
DEFAULT_OUT_DIR = "dist"
DEFAULT_CONFIG_FILE = "shutterlog.json"
OUTPUT_FILENAME = "index.html"

LAYOUTS = ("blog", "gallery")
DEFAULT_HEADINGS = {
    "blog": ("Commit Blog", "A blog generated from git commits"),
    "gallery": ("Commit Gallery", "A gallery generated from git commits"),
}

IGNORE_MARKER = "[ignore]"
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".bmp"}
FALLBACK_SIZE = (800, 800)
SHORT_HASH_LEN = 7
DATE_FORMAT = "%m/%d/%Y, %H:%M:%S"

# git log --format: fields split by 0x1f, records by 0x1e; %aN/%aE apply .mailmap
LOG_FORMAT = "%H%x1f%P%x1f%aN%x1f%aE%x1f%aI%x1f%s%x1f%b%x1e"

PHOTOSWIPE_VERSION = "5.4.4"
PHOTOSWIPE_CDN = f"https://cdn.jsdelivr.net/npm/photoswipe@{PHOTOSWIPE_VERSION}/dist/"
LIGHTBOX_FILES = (
    "photoswipe-lightbox.esm.min.js",
    "photoswipe.esm.min.js",
    "photoswipe.css",
)


class GitError(RuntimeError):
    """The commit history could not be read at all."""


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Either a value or the reason it is unavailable.

    Used for every lookup that is allowed to fail without stopping the
    build: diffs, captions, image sizes.
    """

    value: Optional[T] = None
    problem: Optional[str] = None

    @classmethod
    def found(cls, value: T) -> "Lookup[T]":
        return cls(value=value)

    @classmethod
    def unavailable(cls, problem: str) -> "Lookup[T]":
        return cls(problem=problem)

    @property
    def ok(self) -> bool:
        return self.problem is None

    def get(self, default: T) -> T:
        return self.value if self.ok else default


@dataclass(frozen=True)
class Commit:
    sha: str
    parents: tuple[str, ...]
    author: str
    email: str
    timestamp: datetime
    title: str
    body: str = ""


@dataclass(frozen=True)
class ImageRef:
    path: str
    commit: str
    title: str
    date: str
    caption: Optional[str] = None
    width: int = FALLBACK_SIZE[0]
    height: int = FALLBACK_SIZE[1]


@dataclass(frozen=True)
class Post:
    hash: str
    author: str
    email: str
    date: str
    iso_date: str
    title: str
    paragraphs: tuple[str, ...]
    images: tuple[ImageRef, ...]


@dataclass(frozen=True)
class Prefix:
    label: str
    url: Optional[str] = None


@dataclass(frozen=True)
class SiteConfig:
    """Display settings read from shutterlog.json (all optional)."""

    title: Optional[str] = None
    subtitle: Optional[str] = None
    avatar: Optional[str] = None
    prefixes: tuple[Prefix, ...] = ()


@dataclass(frozen=True)
class BuildConfig:
    repo_dir: Path = Path(".")
    branch: str = DEFAULT_BRANCH
    max_posts: int = DEFAULT_MAX_POSTS
    out_dir: Path = Path(DEFAULT_OUT_DIR)
    layout: str = "blog"
    config_file: str = DEFAULT_CONFIG_FILE
    lightbox: bool = True


# ---------------------------------------------------------------------------
# Step 1: Read commits
# ---------------------------------------------------------------------------

def run_git(repo_dir: Path, *args: str, errors: str = "replace") -> str:
    result = subprocess.run(
        ["git", "-C", str(repo_dir), *args],
        check=True,
        capture_output=True,
        encoding="utf-8",
        errors=errors,
    )
    return result.stdout


def _parse_timestamp(value: str) -> datetime:
    # git prints "Z" for UTC, which fromisoformat only accepts on 3.11+
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def list_commits(repo_dir: Path, branch: str, max_count: int) -> list[Commit]:
    """Return up to max_count commits of branch, newest first.

    Raises GitError when git is missing, repo_dir is not a repository or
    the branch does not exist.
    """
    try:
        out = run_git(
            repo_dir,
            "log",
            f"--max-count={max_count}",
            f"--format={LOG_FORMAT}",
            branch,
            "--",
        )
    except FileNotFoundError as e:
        raise GitError("git executable not found") from e
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or "").strip() or f"git log exited with status {e.returncode}"
        raise GitError(detail) from e

    commits = []
    for rec in out.split("\x1e"):
        rec = rec.lstrip("\n")
        if not rec.strip():
            continue
        try:
            sha, parents, author, email, date, title, body = rec.split("\x1f", 6)
            timestamp = _parse_timestamp(date)
        except ValueError as e:
            raise GitError(f"unexpected git log output: {rec[:80]!r}") from e
        commits.append(Commit(
            sha=sha,
            parents=tuple(parents.split()),
            author=author,
            email=email,
            timestamp=timestamp,
            title=title,
            body=body.rstrip(),
        ))
    return commits


def changed_files(repo_dir: Path, commit: Commit) -> Lookup[list[str]]:
    """Paths changed between commit and its first parent.

    A root commit has nothing to diff against and yields an empty list.
    """
    if not commit.parents:
        return Lookup.found([])
    try:
        out = run_git(
            repo_dir, "diff", "--name-only", "-z", commit.parents[0], commit.sha,
            errors="surrogateescape",
        )
    except subprocess.CalledProcessError as e:
        return Lookup.unavailable((e.stderr or "").strip() or f"git diff exited with status {e.returncode}")
    except OSError as e:
        return Lookup.unavailable(str(e))
    return Lookup.found([p for p in out.split("\0") if p])


# ---------------------------------------------------------------------------
# Step 2: Classify images and read their metadata
# ---------------------------------------------------------------------------

EXIF_DESCRIPTION = 0x010E
EXIF_ORIENTATION = 0x0112
EXIF_XP_TITLE = 0x9C9B
EXIF_XP_COMMENT = 0x9C9C
TEXT_CHUNK_KEYS = ("description", "title", "comment")

_SVG_LENGTH = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(px)?\s*$")


def shown(path: str) -> str:
    """Printable form of a path that may hold surrogate escapes."""
    return path.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def filter_images(paths) -> list[str]:
    """Keep paths with an image extension, dropping repeats."""
    seen = dict.fromkeys(p for p in paths if os.path.splitext(p)[1].lower() in IMAGE_EXTENSIONS)
    return list(seen)


def _as_text(value) -> Optional[str]:
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="replace")
    if not isinstance(value, str):
        return None
    text = value.strip("\x00").strip()
    return text or None


def _xp_text(value) -> Optional[str]:
    # Windows XP* tags are UTF-16LE byte strings (sometimes tuples of ints)
    if isinstance(value, tuple):
        value = bytes(value)
    if not isinstance(value, (bytes, bytearray)):
        return None
    return _as_text(bytes(value).decode("utf-16-le", errors="ignore"))


def read_caption(path: Path) -> Lookup[str]:
    """Read the description embedded in an image file, if there is one.

    EXIF ImageDescription wins, then the Windows XPComment/XPTitle tags,
    then PNG/WebP text chunks and GIF/JPEG comments.
    """
    path = Path(path)
    if path.suffix.lower() == ".svg":
        return Lookup.unavailable("SVG files have no embedded caption")
    try:
        with Image.open(path) as img:
            exif = img.getexif()
            info = {str(k).lower(): v for k, v in img.info.items()}
    except Exception as e:
        return Lookup.unavailable(f"{path.name}: {e}")

    candidates = [
        _as_text(exif.get(EXIF_DESCRIPTION)),
        _xp_text(exif.get(EXIF_XP_COMMENT)),
        _xp_text(exif.get(EXIF_XP_TITLE)),
    ]
    candidates += [_as_text(info.get(key)) for key in TEXT_CHUNK_KEYS]
    for text in candidates:
        if text:
            return Lookup.found(text)
    return Lookup.unavailable(f"{path.name}: no embedded caption")


def _svg_length(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    m = _SVG_LENGTH.match(value)
    if not m:
        return None
    n = round(float(m.group(1)))
    return n if n > 0 else None


def _svg_dimensions(path: Path) -> Lookup[tuple[int, int]]:
    try:
        root = ET.parse(path).getroot()
    except (OSError, ET.ParseError) as e:
        return Lookup.unavailable(f"{path.name}: {e}")

    width = _svg_length(root.get("width"))
    height = _svg_length(root.get("height"))
    if width and height:
        return Lookup.found((width, height))

    view_box = (root.get("viewBox") or "").replace(",", " ").split()
    if len(view_box) == 4:
        try:
            w, h = round(float(view_box[2])), round(float(view_box[3]))
        except ValueError:
            w = h = 0
        if w > 0 and h > 0:
            return Lookup.found((w, h))
    return Lookup.unavailable(f"{path.name}: SVG has no usable width/height or viewBox")


def read_dimensions(path: Path) -> Lookup[tuple[int, int]]:
    """Pixel size as displayed, i.e. after applying EXIF orientation."""
    path = Path(path)
    if path.suffix.lower() == ".svg":
        return _svg_dimensions(path)
    try:
        with Image.open(path) as img:
            width, height = img.size
            orientation = img.getexif().get(EXIF_ORIENTATION)
    except Exception as e:
        return Lookup.unavailable(f"{path.name}: {e}")

    # 5-8 are the transposed orientations
    if orientation in (5, 6, 7, 8):
        width, height = height, width
    return Lookup.found((width, height))


# ---------------------------------------------------------------------------
# Step 3: Assemble posts
# ---------------------------------------------------------------------------

def is_ignored(title: str) -> bool:
    return title.strip().lower().startswith(IGNORE_MARKER)


def format_paragraphs(text: str) -> list[str]:
    """Blank lines separate paragraphs; single newlines are just spaces."""
    if not text:
        return []
    paragraphs = (para.replace("\n", " ").strip() for para in re.split(r"\n\n+", text))
    return [p for p in paragraphs if p]


def format_date(timestamp: datetime) -> str:
    return timestamp.strftime(DATE_FORMAT)


async def _fetch(fetcher: Callable[..., Lookup], *args) -> Lookup:
    """Run a blocking fetcher off the event loop, turning crashes into a miss."""
    try:
        return await asyncio.to_thread(fetcher, *args)
    except Exception as e:
        return Lookup.unavailable(f"{type(e).__name__}: {e}")


async def _image_ref(commit: Commit, path: str, caption_fetcher, size_fetcher) -> ImageRef:
    caption, size = await asyncio.gather(
        _fetch(caption_fetcher, path),
        _fetch(size_fetcher, path),
    )
    if not size.ok:
        print(f"  Warning: no size for {shown(path)}, using {FALLBACK_SIZE[0]}x{FALLBACK_SIZE[1]} ({shown(size.problem)})")
    width, height = size.get(FALLBACK_SIZE)
    return ImageRef(
        path=path,
        commit=commit.sha[:SHORT_HASH_LEN],
        title=commit.title,
        date=format_date(commit.timestamp),
        caption=caption.get(None),
        width=width,
        height=height,
    )


async def _assemble_one(commit: Commit, image_fetcher, caption_fetcher, size_fetcher) -> Optional[Post]:
    short = commit.sha[:SHORT_HASH_LEN]
    files = await _fetch(image_fetcher, commit)
    if not files.ok:
        print(f"  Warning: could not get diff for {short}: {shown(files.problem)}")
    images = filter_images(files.get([]))
    if not images:
        return None

    refs = await asyncio.gather(
        *(_image_ref(commit, path, caption_fetcher, size_fetcher) for path in images)
    )
    return Post(
        hash=short,
        author=commit.author,
        email=commit.email,
        date=format_date(commit.timestamp),
        iso_date=commit.timestamp.isoformat(),
        title=commit.title,
        paragraphs=tuple(format_paragraphs(commit.body or commit.title)),
        images=tuple(refs),
    )


async def assemble(
    commits: list[Commit],
    image_fetcher: Callable[[Commit], Lookup[list[str]]],
    caption_fetcher: Callable[[str], Lookup[str]],
    size_fetcher: Callable[[str], Lookup[tuple[int, int]]],
) -> list[Post]:
    """Turn commits into posts, newest first.

    image_fetcher returns the paths a commit changed; caption_fetcher and
    size_fetcher receive repository-relative image paths. Commits are
    processed concurrently but the result keeps the input order.
    """
    kept = [c for c in commits if not is_ignored(c.title)]
    print(f"  {len(kept)} of {len(commits)} commits left after dropping {IGNORE_MARKER}")

    posts = await asyncio.gather(
        *(_assemble_one(c, image_fetcher, caption_fetcher, size_fetcher) for c in kept)
    )
    return [p for p in posts if p is not None]


def assemble_posts(commits, image_fetcher, caption_fetcher, size_fetcher) -> list[Post]:
    return asyncio.run(assemble(commits, image_fetcher, caption_fetcher, size_fetcher))


def flatten_images(posts: list[Post]) -> list[ImageRef]:
    """All images in post order; a path changed again later keeps its newest entry."""
    seen: dict[str, ImageRef] = {}
    for post in posts:
        for image in post.images:
            seen.setdefault(image.path, image)
    return list(seen.values())


# ---------------------------------------------------------------------------
# Step 4: Site config
# ---------------------------------------------------------------------------

def _parse_prefix(entry) -> Optional[Prefix]:
    if isinstance(entry, str) and entry.strip():
        return Prefix(label=entry.strip())
    if isinstance(entry, dict):
        label = entry.get("label") or entry.get("name")
        url = entry.get("url")
        if isinstance(label, str) and label.strip():
            return Prefix(label=label.strip(), url=url if isinstance(url, str) and url else None)
    return None


def load_site_config(path: Path) -> SiteConfig:
    """Load shutterlog.json. A missing or broken file means defaults."""
    if not path.exists():
        print(f"  No {path.name} found, using default site settings")
        return SiteConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"  Warning: could not read {path}: {e}")
        return SiteConfig()
    if not isinstance(data, dict):
        print(f"  Warning: {path} should hold a JSON object, ignoring it")
        return SiteConfig()

    def text(key):
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            print(f"  Warning: {path.name}: '{key}' should be a string, ignoring it")
            return None
        return value or None

    raw_prefixes = data.get("prefixes") or []
    if not isinstance(raw_prefixes, list):
        print(f"  Warning: {path.name}: 'prefixes' should be a list, ignoring it")
        raw_prefixes = []
    prefixes = []
    for entry in raw_prefixes:
        prefix = _parse_prefix(entry)
        if prefix is None:
            print(f"  Warning: {path.name}: skipping prefix {entry!r}")
            continue
        prefixes.append(prefix)

    config = SiteConfig(
        title=text("title"),
        subtitle=text("subtitle"),
        avatar=text("avatar"),
        prefixes=tuple(prefixes),
    )
    print(f"  Loaded {path.name} ({len(prefixes)} prefixes{', avatar' if config.avatar else ''})")
    return config


# ---------------------------------------------------------------------------
# Step 5: Copy images and assets
# ---------------------------------------------------------------------------

def copy_images(paths, repo_dir: Path, out_dir: Path) -> int:
    """Copy images from the working tree to the same relative path in out_dir."""
    copied = 0
    for rel in dict.fromkeys(paths):
        src = repo_dir / rel
        if not src.is_file():
            print(f"  Warning: image not found: {shown(rel)}")
            continue
        dst = out_dir / rel
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, dst)
        except OSError as e:
            print(f"  Warning: could not copy {shown(rel)}: {e}")
            continue
        copied += 1
    return copied


def avatar_target(avatar: str) -> str:
    """Where the avatar lands inside out_dir."""
    p = Path(avatar)
    return p.name if p.is_absolute() or ".." in p.parts else p.as_posix()


def copy_avatar(site: SiteConfig, repo_dir: Path, out_dir: Path) -> bool:
    if not site.avatar:
        return False
    src = repo_dir / site.avatar
    if not src.is_file():
        print(f"  Warning: avatar not found: {site.avatar}")
        return False
    dst = out_dir / avatar_target(site.avatar)
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
    except OSError as e:
        print(f"  Warning: could not copy avatar: {e}")
        return False
    return True


def fetch_lightbox(out_dir: Path, transport: Optional[httpx.BaseTransport] = None) -> bool:
    """Download PhotoSwipe into out_dir/assets, skipping files already there."""
    assets_dir = out_dir / "assets"
    missing = [name for name in LIGHTBOX_FILES if not (assets_dir / name).exists()]
    if not missing:
        print("  Lightbox assets already present")
        return True

    try:
        assets_dir.mkdir(parents=True, exist_ok=True)
        with httpx.Client(transport=transport, follow_redirects=True, timeout=30) as client:
            for name in missing:
                print(f"  Downloading {name}...")
                resp = client.get(PHOTOSWIPE_CDN + name)
                resp.raise_for_status()
                (assets_dir / name).write_bytes(resp.content)
    except (httpx.HTTPError, OSError) as e:
        print(f"  Warning: could not fetch lightbox assets: {e}")
        return False
    return True


# ---------------------------------------------------------------------------
# Step 6: Generate HTML
# ---------------------------------------------------------------------------

PAGE_CSS = Markup("""\
* { margin: 0; padding: 0; box-sizing: border-box; }
body {
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, Cantarell, sans-serif;
  line-height: 1.6; color: #333; background: #f5f5f5; padding: 20px;
}
a { color: #2c7be5; text-decoration: none; }
.container {
  max-width: 800px; margin: 0 auto; background: white; padding: 40px;
  box-shadow: 0 2px 10px rgba(0,0,0,0.1); border-radius: 8px;
}
.container.wide { max-width: 1200px; }

/* ── header ── */
.site-header { display: flex; align-items: center; gap: 20px; margin-bottom: 40px; }
.avatar { width: 72px; height: 72px; border-radius: 50%; object-fit: cover; }
h1 { font-size: 2.5rem; margin-bottom: 10px; color: #2c3e50; }
.subtitle { color: #7f8c8d; font-size: 1.1rem; }
.prefixes { margin-top: 10px; display: flex; flex-wrap: wrap; gap: 6px; }
.prefixes a, .prefixes span {
  display: inline-block; background: #ecf0f1; padding: 2px 10px;
  border-radius: 12px; font-size: 0.85rem; color: #555;
}

/* ── posts ── */
.post { margin-bottom: 50px; padding-bottom: 40px; border-bottom: 1px solid #ecf0f1; }
.post:last-child { border-bottom: none; }
.post h2 { font-size: 1.8rem; margin-bottom: 15px; color: #34495e; }
.meta {
  display: flex; gap: 20px; margin-bottom: 20px; font-size: 0.9rem;
  color: #7f8c8d; flex-wrap: wrap;
}
.author::before { content: '👤 '; margin-right: 5px; }
.date::before { content: '📅 '; margin-right: 5px; }
.commit {
  font-family: 'Courier New', monospace; background: #ecf0f1;
  padding: 2px 8px; border-radius: 3px;
}
.content { font-size: 1.05rem; color: #555; }
.content p { margin-bottom: 15px; }

/* ── image grid ── */
.image-grid {
  display: grid; grid-template-columns: repeat(auto-fill, minmax(200px, 1fr));
  gap: 10px; margin-top: 20px;
}
.image-item { background: #f8f9fa; border-radius: 4px; overflow: hidden; }
.image-item a { display: block; aspect-ratio: 1; overflow: hidden; cursor: pointer; }
.image-item img {
  width: 100%; height: 100%; object-fit: cover; display: block;
  transition: transform 0.3s ease;
}
.image-item:hover img { transform: scale(1.05); }
.image-item figcaption { padding: 8px 10px; font-size: 0.85rem; color: #555; }
.image-item figcaption .meta { gap: 8px; margin: 4px 0 0; font-size: 0.8rem; }

footer {
  margin-top: 60px; padding-top: 20px; border-top: 2px solid #ecf0f1;
  text-align: center; color: #95a5a6; font-size: 0.9rem;
}

@media (max-width: 768px) {
  body { padding: 10px; }
  .container { padding: 20px; }
  h1 { font-size: 2rem; }
  .post h2 { font-size: 1.5rem; }
  .image-grid { grid-template-columns: repeat(auto-fill, minmax(150px, 1fr)); gap: 8px; }
}
""")

PAGE_TEMPLATE = Template("""\
{%- macro image_link(image, lightbox) -%}
<a href="{{ image.path|urlpath }}"{% if lightbox %} data-pswp-width="{{ image.width }}" data-pswp-height="{{ image.height }}"{% else %} target="_blank"{% endif %}><img src="{{ image.path|urlpath }}" alt="{{ image.caption or 'Image from commit ' ~ image.commit }}" width="{{ image.width }}" height="{{ image.height }}" loading="lazy"></a>
{%- endmacro -%}
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ title }}</title>
{% if lightbox %}<link rel="stylesheet" href="assets/photoswipe.css">
{% endif %}<style>
{{ css }}</style>
</head>
<body>
<div class="container{% if layout == 'gallery' %} wide{% endif %}">
<header class="site-header">
{% if avatar %}<img class="avatar" src="{{ avatar|urlpath }}" alt="">
{% endif %}<div>
<h1>{{ title }}</h1>
<p class="subtitle">{{ subtitle }}</p>
{% if prefixes %}<div class="prefixes">{% for p in prefixes %}{% if p.url %}<a href="{{ p.url }}">{{ p.label }}</a>{% else %}<span>{{ p.label }}</span>{% endif %}{% endfor %}</div>
{% endif %}</div>
</header>
<main>
{% if layout == 'gallery' %}
<div class="image-grid">
{% for image in images %}<figure class="image-item">
{{ image_link(image, lightbox) }}
<figcaption>
{% if image.caption %}<p class="caption">{{ image.caption }}</p>
{% endif %}<p class="meta"><span class="title">{{ image.title }}</span> <span class="date">{{ image.date }}</span> <span class="commit">#{{ image.commit }}</span></p>
</figcaption>
</figure>
{% endfor %}</div>
{% else %}
{% for post in posts %}<article class="post" id="commit-{{ post.hash }}">
<header>
<h2>{{ post.title }}</h2>
<div class="meta">
<span class="author">{{ post.author }}</span>
<time class="date" datetime="{{ post.iso_date }}">{{ post.date }}</time>
<span class="commit">#{{ post.hash }}</span>
</div>
</header>
<div class="content">
{% for para in post.paragraphs %}<p>{{ para }}</p>
{% endfor %}</div>
<div class="image-grid">
{% for image in post.images %}<figure class="image-item">
{{ image_link(image, lightbox) }}
{% if image.caption %}<figcaption>{{ image.caption }}</figcaption>
{% endif %}</figure>
{% endfor %}</div>
</article>
{% endfor %}
{% endif %}
</main>
<footer>
{% if layout == 'gallery' %}<p>{{ images|length }} image{{ '' if images|length == 1 else 's' }} from {{ posts|length }} commit{{ '' if posts|length == 1 else 's' }}</p>
{% else %}<p>Generated from {{ posts|length }} commit{{ '' if posts|length == 1 else 's' }}</p>
{% endif %}</footer>
</div>
{% if lightbox %}<script type="module">
import PhotoSwipeLightbox from './assets/photoswipe-lightbox.esm.min.js';
const lightbox = new PhotoSwipeLightbox({
  gallery: '.image-grid',
  children: 'a',
  pswpModule: () => import('./assets/photoswipe.esm.min.js')
});
lightbox.init();
</script>
{% endif %}</body>
</html>
""")


def render_page(layout: str, posts: list[Post], site: SiteConfig = SiteConfig(), lightbox: bool = False) -> str:
    """Render the whole site as one HTML document."""
    if layout not in LAYOUTS:
        raise ValueError(f"unknown layout {layout!r}, expected one of {', '.join(LAYOUTS)}")
    default_title, default_subtitle = DEFAULT_HEADINGS[layout]
    return PAGE_TEMPLATE.render(
        layout=layout,
        posts=posts,
        images=flatten_images(posts) if layout == "gallery" else [],
        title=site.title or default_title,
        subtitle=site.subtitle or default_subtitle,
        avatar=avatar_target(site.avatar) if site.avatar else None,
        prefixes=site.prefixes,
        lightbox=lightbox,
        css=PAGE_CSS,
    )


def write_page(html: str, out_dir: Path) -> Path:
    out_path = out_dir / OUTPUT_FILENAME
    out_path.write_text(html, encoding="utf-8")
    return out_path


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def build(config: BuildConfig) -> int:
    """Run the whole pipeline. Returns the process exit code."""
    repo_dir = Path(config.repo_dir)
    out_dir = Path(config.out_dir)

    print(f"Step 1: Reading up to {config.max_posts} commits from {config.branch}...")
    try:
        commits = list_commits(repo_dir, config.branch, config.max_posts)
    except GitError as e:
        print(f"Error: could not read commits: {e}", file=sys.stderr)
        return 1
    for c in commits:
        title = c.title if len(c.title) <= 60 else c.title[:60] + "..."
        print(f"  {c.sha[:SHORT_HASH_LEN]} {format_date(c.timestamp)} {c.author}: {title}")

    print("Step 2: Collecting images...")
    posts = assemble_posts(
        commits,
        lambda commit: changed_files(repo_dir, commit),
        lambda path: read_caption(repo_dir / path),
        lambda path: read_dimensions(repo_dir / path),
    )
    image_paths = [image.path for post in posts for image in post.images]
    print(f"  {len(posts)} posts with {len(set(image_paths))} images")

    print("Step 3: Loading site config...")
    site = load_site_config(repo_dir / config.config_file)

    print("Step 4: Copying images...")
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Error: could not create {out_dir}: {e}", file=sys.stderr)
        return 1
    copied = copy_images(image_paths, repo_dir, out_dir)
    print(f"  Copied {copied} image{'' if copied == 1 else 's'} to {out_dir}")
    if site.avatar and not copy_avatar(site, repo_dir, out_dir):
        site = replace(site, avatar=None)

    lightbox = False
    if config.lightbox:
        print("Step 5: Fetching lightbox...")
        lightbox = fetch_lightbox(out_dir)

    print("Step 6: Generating HTML...")
    html = render_page(config.layout, posts, site, lightbox=lightbox)
    try:
        out_path = write_page(html, out_dir)
    except OSError as e:
        print(f"Error: could not write {OUTPUT_FILENAME}: {e}", file=sys.stderr)
        return 1
    print(f"  Wrote {out_path} ({len(posts)} posts, {config.layout} layout)")

    print(f"\nDone! Site written to {out_dir}/")
    print(f"Run: python3 -m http.server -d {out_dir} 8000")
    return 0


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {n}")
    return n


def parse_args(argv=None, environ=None) -> BuildConfig:
    """Build a BuildConfig from flags, falling back to environment variables."""
    env = os.environ if environ is None else environ
    ap = argparse.ArgumentParser(description="Build a static photo blog from a git repository's commits")
    ap.add_argument("--repo", default=".", help="Path to the git working copy (default: .)")
    ap.add_argument("--branch", default=env.get("BRANCH", DEFAULT_BRANCH),
                    help=f"Branch to read (env BRANCH, default: {DEFAULT_BRANCH})")
    ap.add_argument("--max-posts", type=_positive_int, default=env.get("MAX_POSTS", str(DEFAULT_MAX_POSTS)),
                    help=f"Number of commits to read (env MAX_POSTS, default: {DEFAULT_MAX_POSTS})")
    ap.add_argument("--out", "-o", default=env.get("OUTPUT_DIR", DEFAULT_OUT_DIR),
                    help=f"Output directory (env OUTPUT_DIR, default: {DEFAULT_OUT_DIR})")
    ap.add_argument("--layout", default=env.get("LAYOUT", "blog"),
                    help="blog (one post per commit) or gallery (one tile per image); env LAYOUT")
    ap.add_argument("--config", default=DEFAULT_CONFIG_FILE,
                    help=f"Site config JSON, relative to the repo (default: {DEFAULT_CONFIG_FILE})")
    ap.add_argument("--no-lightbox", action="store_true", help="Don't download the PhotoSwipe lightbox")
    args = ap.parse_args(argv)

    if args.layout not in LAYOUTS:
        ap.error(f"layout must be one of {', '.join(LAYOUTS)}, got {args.layout!r}")

    return BuildConfig(
        repo_dir=Path(args.repo),
        branch=args.branch,
        max_posts=args.max_posts,
        out_dir=Path(args.out),
        layout=args.layout,
        config_file=args.config,
        lightbox=not args.no_lightbox,
    )


def main(argv=None) -> int:
    return build(parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
