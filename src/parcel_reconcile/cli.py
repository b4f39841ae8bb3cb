from __future__ import annotations

import argparse
import hashlib
import logging
import sys
from contextlib import nullcontext
from pathlib import Path

from jsonschema.exceptions import ValidationError

from .config import ReconcileConfig, configure_logging
from .geometry import ShapelyGeometryEngine
from .inputs import load_choices, load_farm_document
from .matcher import compare_fields
from .process import process_import
from .registry import LocalFileRegistryProvider
from .report import build_review_report, encode_json, write_json
from .store import InMemoryFieldStore
from .types import ReviewItem

LOGGER = logging.getLogger(__name__)


def _compare(args: argparse.Namespace, config: ReconcileConfig) -> tuple[InMemoryFieldStore, list[ReviewItem]]:
    farm_id, fields, catalogue = load_farm_document(Path(args.farm))
    remote = LocalFileRegistryProvider(Path(args.rvo)).fetch_fields(
        year=args.year, farm_external_id=farm_id
    )
    items = compare_fields(
        fields,
        remote,
        args.year,
        catalogue,
        engine=ShapelyGeometryEngine(config.area_method),
        crop_code_prefix=config.crop_code_prefix,
    )
    return InMemoryFieldStore(farm_id, fields, catalogue), items


def _sha256(path: Path) -> str:
    with path.open("rb") as f:
        return hashlib.file_digest(f, "sha256").hexdigest()


def _input_digests(args: argparse.Namespace) -> dict[str, str]:
    return {
        "farm_sha256": _sha256(Path(args.farm)),
        "rvo_sha256": _sha256(Path(args.rvo)),
    }


def _emit(obj: object, out: str | None) -> None:
    if out:
        write_json(Path(out), obj)
    else:
        sys.stdout.write(encode_json(obj).decode("utf-8"))


def cmd_compare(args: argparse.Namespace, config: ReconcileConfig) -> int:
    _, items = _compare(args, config)
    _emit(build_review_report(items, year=args.year, inputs=_input_digests(args)), args.out)
    return 0


def cmd_apply(args: argparse.Namespace, config: ReconcileConfig) -> int:
    store, items = _compare(args, config)
    choices = load_choices(Path(args.choices))

    scope = store.transaction() if args.atomic else nullcontext(store)
    try:
        with scope:
            result = process_import(
                store,
                store.farm_id,
                items,
                choices,
                args.year,
                crop_code_prefix=config.crop_code_prefix,
            )
    finally:
        # Whatever the store holds is what was committed.
        write_json(Path(args.out), store.to_document())
    _emit(
        {
            "applied": result.applied,
            "skipped": result.skipped,
            "added_field_ids": result.added_field_ids,
            "out": str(args.out),
        },
        None,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m parcel_reconcile.cli",
        description="Reconcile a farm's field parcels against a registry crop-field snapshot.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    def add_common(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--farm", required=True, help="Path to the farm field document (JSON)")
        sp.add_argument("--rvo", required=True, help="Path to the registry export (GeoJSON)")
        sp.add_argument("--year", required=True, type=int, help="Calendar year under review")

    compare = sub.add_parser("compare", help="Classify and diff local against registry fields.")
    add_common(compare)
    compare.add_argument("--out", help="Write the review report here instead of stdout.")
    compare.set_defaults(func=cmd_compare)

    apply = sub.add_parser("apply", help="Apply operator choices and write the updated farm document.")
    add_common(apply)
    apply.add_argument("--choices", required=True, help="JSON object mapping item id to action")
    apply.add_argument("--out", required=True, help="Where to write the updated farm document")
    apply.add_argument(
        "--atomic",
        action="store_true",
        help="Discard all changes if any action fails (default: keep the ones already applied).",
    )
    apply.set_defaults(func=cmd_apply)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = ReconcileConfig.from_env()
        configure_logging(level=config.log_level)
        return args.func(args, config)
    except (ValidationError, ValueError, FileNotFoundError, KeyError) as exc:
        if isinstance(exc, ValidationError):
            message = exc.message
        elif isinstance(exc, KeyError):
            message = str(exc.args[0]) if exc.args else repr(exc)
        else:
            message = str(exc)
        print(f"error: {message}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
