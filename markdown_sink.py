"""Markdown file sink: one ``.md`` file with YAML front matter per article."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

import yaml

from errors import WriteError
from models import FullArticle

STRUCTURE_PLATFORM = "platform"
STRUCTURE_FLAT = "flat"
STRUCTURES = (STRUCTURE_PLATFORM, STRUCTURE_FLAT)

LOGGER = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Lowercase ASCII slug: every other character becomes a single ``-``."""
    return _NON_ALNUM.sub("-", title.lower()).strip("-")


def article_filename(article: FullArticle) -> str:
    """``YYYY-MM-DD-<slug>.md``; articles without a publish date use ``draft-``."""
    prefix = article.published_at.strftime("%Y-%m-%d") if article.published_at else "draft"
    return f"{prefix}-{slugify(article.title)}.md"


def render_markdown(article: FullArticle) -> str:
    """Render front matter, platform id marker and body."""
    front_matter: dict[str, Any] = {"title": article.title}
    if article.published_at is not None:
        front_matter["scheduled_at"] = article.published_at.isoformat()
    front_matter["status"] = "draft" if article.is_draft else "publish"
    if article.tags:
        front_matter["tags"] = list(article.tags)
    if article.series:
        front_matter["series"] = article.series
    if article.canonical_url:
        front_matter["canonical_url"] = article.canonical_url

    parts = [
        "---\n",
        yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True, default_flow_style=False),
        f"# Platform ID: {article.identity}\n",
        "---\n\n",
        article.body_markdown,
    ]
    output = "".join(parts)
    if not output.endswith("\n"):
        output += "\n"
    return output


def _new_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class MarkdownSink:
    """Writes articles under ``output_dir``, flat or grouped per platform."""

    def __init__(self, output_dir: Path, structure: str = STRUCTURE_PLATFORM) -> None:
        if structure not in STRUCTURES:
            raise ValueError(f"Unknown folder structure: {structure}")
        self.output_dir = Path(output_dir)
        self.structure = structure

    def planned_path(self, article: FullArticle) -> str:
        filename = article_filename(article)
        if self.structure == STRUCTURE_FLAT:
            return filename
        # Custom instance keys look like "custom:host"; keep directory names portable.
        return f"{article.platform.replace(':', '-')}/{filename}"

    def persist(self, article: FullArticle) -> str:
        relative_path = self.planned_path(article)
        target = self.output_dir / relative_path
        content = render_markdown(article)

        tmp_name: str | None = None
        replaced = False
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.chmod(tmp_name, _new_file_mode())
            os.replace(tmp_name, target)
            replaced = True
        except OSError as exc:
            raise WriteError(f"Could not write {target}: {exc}") from exc
        finally:
            if not replaced and tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)

        LOGGER.debug("Wrote %s (%s bytes)", target, len(content))
        return relative_path
