"""icecache status — show what the cache currently tracks."""

from __future__ import annotations

from datetime import datetime

from icecache.commands import get_version, open_store


def _fmt_dt(dt: datetime | None) -> str:
    if dt is None:
        return "never"
    return dt.strftime("%Y-%m-%d %H:%M UTC")


def cmd_status(args) -> None:
    with open_store(args) as store:
        total = store.count_files()
        latest = store.latest_update()
        print(f"icecache {get_version()}")
        print(f"  store   : {store.db_path}")
        print(f"  tracked : {total:,} container files")
        print(f"  newest  : {_fmt_dt(latest)}")
