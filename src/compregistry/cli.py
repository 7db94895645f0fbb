"""CLI for inspecting a composition manifest and dry-running dispatch.

Usage:
    # List every composition with its folder path
    compregistry list --manifest compositions.yaml

    # Register everything, report validation errors, mount nothing
    compregistry validate --manifest compositions.yaml

    # Select one composition and mount it the way a preview or render would
    compregistry dispatch --manifest compositions.yaml --id intro \
        --mode headless-render --props props.yaml --timeout 30
"""

import argparse
import asyncio
import logging
import sys

from .declarations import CompositionTree
from .environment import (
    OperatingMode,
    get_input_props,
    get_operating_mode,
    load_props_file,
)
from .manifest import load_manifest


def _add_common(parser):
    parser.add_argument(
        "--manifest", required=True,
        help="Path to the compositions YAML manifest",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log registry and dispatch activity",
    )


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build_tree(manifest_path, mode_provider=get_operating_mode, props_provider=get_input_props):
    """Load the manifest and register it. Exits with status 1 on bad input."""
    try:
        declarations = load_manifest(manifest_path)
        tree = CompositionTree(mode_provider=mode_provider, props_provider=props_provider)
        tree.render(declarations)
    except (ValueError, ImportError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    return tree


# ── list ─────────────────────────────────────────────────────────


def list_main(args=None):
    parser = argparse.ArgumentParser(
        prog="compregistry list",
        description="List registered compositions.",
    )
    _add_common(parser)
    parsed = parser.parse_args(args)
    _setup_logging(parsed.verbose)

    tree = _build_tree(parsed.manifest)
    for record in tree.registry.list():
        path = f"{record.folder_path}/{record.id}" if record.folder_path else record.id
        print(
            f"  {path:<40} {record.width}x{record.height}  "
            f"{record.fps}fps  {record.duration_in_frames} frames "
            f"({record.duration_seconds:.2f}s)"
        )
    print(f"{len(tree.registry)} composition(s), {len(tree.folders)} folder(s)")
    tree.unmount()


# ── validate ─────────────────────────────────────────────────────


def validate_main(args=None):
    parser = argparse.ArgumentParser(
        prog="compregistry validate",
        description="Validate a compositions manifest without mounting anything.",
    )
    _add_common(parser)
    parsed = parser.parse_args(args)
    _setup_logging(parsed.verbose)

    tree = _build_tree(parsed.manifest, mode_provider=lambda: OperatingMode.OTHER)
    print(f"OK: {len(tree.registry)} composition(s) valid")
    tree.unmount()


# ── dispatch ─────────────────────────────────────────────────────


async def _dispatch(tree: CompositionTree, composition_id: str, timeout: float | None):
    tree.select(composition_id)
    await asyncio.wait_for(tree.wait(), timeout)


def dispatch_main(args=None):
    parser = argparse.ArgumentParser(
        prog="compregistry dispatch",
        description="Select a composition and mount it as preview or render would.",
    )
    _add_common(parser)
    parser.add_argument("--id", required=True, help="Composition id to select")
    parser.add_argument(
        "--mode", default=None,
        choices=[m.value for m in OperatingMode],
        help="Operating mode (default: $COMPREGISTRY_MODE, else 'other')",
    )
    parser.add_argument(
        "--props", default=None,
        help="YAML/JSON file with input props (default: $COMPREGISTRY_INPUT_PROPS)",
    )
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Seconds to wait for the view to load (default: no limit)",
    )
    parsed = parser.parse_args(args)
    _setup_logging(parsed.verbose)

    if parsed.mode is not None:
        mode = OperatingMode.parse(parsed.mode)
        mode_provider = lambda: mode  # noqa: E731
    else:
        mode_provider = get_operating_mode
    if parsed.props is not None:
        props = load_props_file(parsed.props)
        props_provider = lambda: props  # noqa: E731
    else:
        props_provider = get_input_props

    # The tree has to be built on the loop that resolves lazy views.
    async def run():
        tree = _build_tree(parsed.manifest, mode_provider, props_provider)
        if parsed.id not in tree.registry:
            print(f"Error: no composition with id '{parsed.id}'", file=sys.stderr)
            tree.unmount()
            return 1
        try:
            await _dispatch(tree, parsed.id, parsed.timeout)
        except asyncio.TimeoutError:
            print(f"Timed out after {parsed.timeout}s. Pending readiness tokens:")
            for handle, description in tree.ledger.pending().items():
                print(f"  [{handle}] {description}")
            tree.unmount()
            return 1
        except (ValueError, ImportError) as exc:
            # Lazy component references are only imported on mount.
            print(f"Error: {exc}", file=sys.stderr)
            tree.unmount()
            return 1

        mode_name = mode_provider().value
        active = tree.active()
        if active is None:
            print(f"Mode '{mode_name}': composition '{parsed.id}' registered, no view mounted")
        else:
            print(f"Mode '{mode_name}': mounted '{parsed.id}' ({active.state.value})")
            print(f"  props: {active.view.props}")
            print(f"  ready: {tree.ledger.is_ready()}")
        tree.unmount()
        return 0

    status = asyncio.run(run())
    if status:
        sys.exit(status)
