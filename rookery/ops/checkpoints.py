#!/usr/bin/env python3
"""
Rookery checkpoint maintenance
==============================
Inspect and invalidate build checkpoints on the rootfs volume.

Usage:
    rookery-checkpoints list
    rookery-checkpoints info gcc-pass1 --scope build-toolchain
    rookery-checkpoints remove configure-system-complete --global
    rookery-checkpoints clear --confirm
    rookery-checkpoints status [--pipeline pipeline.yaml]

Reads ROOKERY / CHECKPOINT_DIR / SOURCES_DIR / ROOKERY_PIPELINE from the environment.
"""
from __future__ import annotations

import argparse
import json
import sys
from typing import Optional, Sequence

from rookery.checkpoint import CheckpointConfig, CheckpointKind, CheckpointStore
from rookery.stages.config import StageConfig
from rookery.stages.pipeline import Pipeline

RULE = "=" * 42


def _add_target(p: argparse.ArgumentParser) -> None:
    p.add_argument("key", help="Package or milestone name")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--scope", help="Stage scope of a package checkpoint")
    group.add_argument("--global", dest="is_global", action="store_true",
                       help="Stage-level (global) checkpoint")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rookery-checkpoints",
                                     description="Inspect and invalidate Rookery build checkpoints")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List all checkpoints with validity")
    _add_target(sub.add_parser("info", help="Show one checkpoint"))
    _add_target(sub.add_parser("remove", help="Delete one checkpoint (forces rebuild)"))

    clear = sub.add_parser("clear", help="Delete every checkpoint")
    clear.add_argument("--confirm", action="store_true", help="Required to actually clear")

    status = sub.add_parser("status", help="Per-stage completion of the pipeline")
    status.add_argument("--pipeline", help="Pipeline YAML (default: built-in stage list)")
    return parser


def cmd_list(store: CheckpointStore) -> int:
    print(RULE)
    print("Rookery OS Checkpoints")
    print(RULE)
    entries = store.list_checkpoints()
    if not entries:
        print("No checkpoints found.")
        return 0
    valid = 0
    for entry in entries:
        c = entry.checkpoint
        label = c.key if c.kind is CheckpointKind.GLOBAL else f"{c.scope}/{c.key}"
        if entry.valid:
            valid += 1
            print(f"✓ {label} ({c.kind.value}, {c.detail or '-'}) - {c.created_at}")
        else:
            print(f"✗ {label} ({c.kind.value}) - INVALID (source changed)")
    print(RULE)
    print(f"Total: {len(entries)} | Valid: {valid} | Invalid: {len(entries) - valid}")
    print(RULE)
    return 0


def cmd_info(store: CheckpointStore, key: str, scope: Optional[str], is_global: bool) -> int:
    ckpt = store.get_global(key) if is_global else store.get(key, scope or "")
    if ckpt is None:
        print(f"No checkpoint found for: {key}")
        return 1
    print(f"Checkpoint: {key}")
    for line in json.dumps(ckpt.to_dict(), indent=2).splitlines():
        print(f"  {line}")
    return 0


def cmd_remove(store: CheckpointStore, key: str, scope: Optional[str], is_global: bool) -> int:
    removed = store.remove_global(key) if is_global else store.remove(key, scope or "")
    if not removed:
        print(f"No checkpoint found for: {key}")
        return 1
    print(f"Checkpoint removed: {key}")
    return 0


def cmd_clear(store: CheckpointStore, confirm: bool) -> int:
    if not confirm:
        print("ERROR: Must pass --confirm flag to clear all checkpoints")
        return 1
    store.clear_all(confirm=True)
    print(f"All checkpoints cleared at {store.root}")
    return 0


def cmd_status(cfg: CheckpointConfig, pipeline_file: Optional[str]) -> int:
    pipeline = Pipeline.from_yaml(pipeline_file) if pipeline_file else Pipeline.default()
    print(RULE)
    print("Rookery OS Build Status")
    print(RULE)
    done = 0
    for i, (stage, complete) in enumerate(pipeline.status(cfg), 1):
        done += complete
        mark = "✓" if complete else "·"
        print(f"{mark} {i}/{len(pipeline.stages)} {stage.service:<20} {stage.description}")
    print(RULE)
    print(f"Completed: {done}/{len(pipeline.stages)}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = CheckpointConfig.from_env()
    except RuntimeError as exc:
        print(f"ERROR: {exc}")
        return 1
    store = CheckpointStore(cfg)

    try:
        if args.command == "list":
            return cmd_list(store)
        if args.command == "info":
            return cmd_info(store, args.key, args.scope, args.is_global)
        if args.command == "remove":
            return cmd_remove(store, args.key, args.scope, args.is_global)
        if args.command == "clear":
            return cmd_clear(store, args.confirm)
        if args.command == "status":
            return cmd_status(cfg, args.pipeline or StageConfig().pipeline_file or None)
    except ValueError as exc:
        print(f"ERROR: {exc}")
        return 1
    return 2


if __name__ == "__main__":
    sys.exit(main())
