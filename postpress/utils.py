from __future__ import annotations

import datetime as dt
import shutil
from email.utils import format_datetime
from pathlib import Path

TRUE_STRINGS = frozenset({"1", "true", "yes", "y", "on"})


def parse_bool(value: object) -> bool:
    """Read a config or header flag; unknown values count as off."""
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    if isinstance(value, (bool, int, float)):
        return bool(value)
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, int):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def join_url(base: str, path: str) -> str:
    path = path.lstrip("/")
    return f"{base.rstrip('/')}/{path}" if path else base.rstrip("/")


def rfc822_date(value: dt.datetime) -> str:
    # Post dates are naive UTC.
    return format_datetime(value.replace(tzinfo=dt.timezone.utc))


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def write_nojekyll(output_dir: Path) -> None:
    write_text(output_dir / ".nojekyll", "")


def clean_output_dir(output_dir: Path, project_root: Path) -> None:
    """Delete ``output_dir`` before a build.

    Raises ValueError instead of deleting the project root itself or anything
    outside it.
    """
    if not output_dir.exists():
        return
    target = output_dir.resolve()
    root = project_root.resolve()
    if target == root:
        raise ValueError("Refusing to clean project root.")
    if root not in target.parents:
        raise ValueError("Refusing to clean output directory outside project root.")
    shutil.rmtree(target)


def copy_static(static_dir: Path, output_dir: Path) -> None:
    """Copy static assets into the output, replacing same-named directories."""
    for item in sorted(static_dir.iterdir()):
        dest = output_dir / item.name
        if not item.is_dir():
            shutil.copy2(item, dest)
            continue
        if dest.exists():
            shutil.rmtree(dest)
        shutil.copytree(item, dest)
