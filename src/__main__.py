#!/usr/bin/env python3
"""
minikit - Incremental front-end build watcher

Watches a source directory and compiles script and stylesheet entries into
an output directory, each with a sidecar sourcemap. Files (or directories)
whose name starts with "_" are partials: they are never emitted on their
own, only inlined into entries through include directives:

    // @import "_util.js";
    // @codekit-prepend "_vendor/jquery.js";
    // @prepros-prepend "_mixins.scss";

Editing a partial rebuilds every entry that inlined it, and nothing else.

As an aside, this codebase leverages the ChRIS "plugin" concept/pattern as
general purpose python app development framework.

Usage:
    minikit inputdir/ outputdir/

    Everything under inputdir/ is built once, then kept in sync until
    interrupted.

Examples:
    # Watch one source/output pair
    minikit site/ public/

    # Watch every pair listed in site/minikit.config.json (picked up
    # automatically; --config names a different file)
    minikit site/ public/
    minikit site/ public/ --config targets.yml

    # Build once and exit (CI)
    minikit site/ public/ --once

    # Rebuild everything on every change, verbose
    minikit site/ public/ --strategy rescan -vv
"""

import asyncio
import sys
from pathlib import Path
from argparse import ArgumentParser, Namespace, ArgumentDefaultsHelpFormatter
from typing import Dict, List

from chris_plugin import chris_plugin
from .config import appsettings, ConfigError, WatchTarget, targets_load
from .lib import (
    BuildOrchestrator,
    Toolchain,
    WatchSupervisor,
    __version__,
    LOG,
    ERROR,
    state_connectToLogger,
)
from .lib.orchestrator import STRATEGIES
from .models import ProgramState, BuildStats, pipeline


# Define CLI arguments
parser = ArgumentParser(
    description="minikit - Incremental front-end build watcher",
    formatter_class=ArgumentDefaultsHelpFormatter,
)

parser.add_argument(
    "--config",
    default=None,
    type=str,
    help=(
        "Watch-target list (JSON/YAML, relative to inputdir). "
        "Each entry's src is taken from inputdir, out from outputdir. "
        f"Used automatically when inputdir holds {appsettings.config_filename}"
    ),
)

parser.add_argument(
    "--strategy",
    default=appsettings.strategy,
    choices=sorted(STRATEGIES),
    help="targeted: rebuild only affected entries; rescan: rebuild all entries on any change",
)

parser.add_argument(
    "--once",
    action="store_true",
    default=False,
    help="Build every entry once and exit instead of watching",
)

parser.add_argument(
    "-v",
    "--verbosity",
    action="count",
    default=1,
    help="Increase output verbosity (can be repeated: -v, -vv, -vvv)",
)

parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")


def env_check(inputstate: ProgramState) -> ProgramState:
    """
    Validate environment and resolve all paths.

    Args:
        inputstate: Initial program state with CLI options

    Returns:
        ProgramState with added fields:
            - sourceRoot: Canonical input directory
            - outputRoot: Canonical (created) output directory
            - configFile: Config path when --config was given or the default
              config file exists in the input directory
            - envOK: True if environment is valid

    Exits:
        1 if the input directory does not exist, or --once is combined
        with a missing config file
    """
    state = inputstate.copy()
    LOG("Checking environment...", level=2)

    if state.inputdir is None or not Path(state.inputdir).is_dir():
        print(f"Error: Input directory not found: {state.inputdir}", file=sys.stderr)
        state.envOK = False
        sys.exit(1)

    state.sourceRoot = Path(state.inputdir).resolve()
    state.outputRoot = Path(state.outputdir or ".").resolve()
    state.outputRoot.mkdir(parents=True, exist_ok=True)
    LOG(f"Source root: {state.sourceRoot}", level=2)
    LOG(f"Output root: {state.outputRoot}", level=2)

    if not state.config and (state.sourceRoot / appsettings.config_filename).is_file():
        state.config = appsettings.config_filename

    if state.config:
        state.configFile = state.sourceRoot / state.config
        if state.once and not state.configFile.exists():
            print(f"Error: Config file not found: {state.configFile}", file=sys.stderr)
            state.envOK = False
            sys.exit(1)
        LOG(f"Config file: {state.configFile}", level=2)

    state.envOK = True
    return state


def targets_resolve(inputstate: ProgramState) -> ProgramState:
    """
    Determine the watch targets.

    Without a config file the single target is (inputdir, outputdir). With
    a config file in watch mode the supervisor loads (and reloads) the file
    itself, so nothing is read here.

    Returns:
        ProgramState with added field:
            - targets: List[WatchTarget]

    Exits:
        1 if --once is given and the config file is unusable
    """
    state = inputstate.copy()

    if state.configFile is None:
        state.targets = [WatchTarget(src=state.sourceRoot, out=state.outputRoot)]
    elif state.once:
        try:
            state.targets = targets_load(state.configFile, state.sourceRoot, state.outputRoot)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    LOG(f"{len(state.targets)} watch target(s) resolved", level=2)
    return state


async def targets_buildOnce(
    targets: List[WatchTarget], toolchain: Toolchain
) -> Dict[str, BuildStats]:
    """Build every entry of every target once"""
    results: Dict[str, BuildStats] = {}
    for target in targets:
        if not target.src.is_dir():
            ERROR(f"❌ Source directory not found, skipping target: {target.src}")
            results[target.key] = BuildStats(failed=1)
            continue
        orchestrator = BuildOrchestrator(target.src, target.out, toolchain)
        await orchestrator.tree_build()
        results[target.key] = orchestrator.stats
    return results


async def targets_watch(state: ProgramState, toolchain: Toolchain) -> None:
    """Watch until interrupted, from the config file or the resolved targets"""
    supervisor = WatchSupervisor(toolchain=toolchain, strategy=state.strategy)
    if state.configFile is not None:
        await supervisor.config_watch(state.configFile, state.sourceRoot, state.outputRoot)
    else:
        await supervisor.run(state.targets)


def targets_run(inputstate: ProgramState) -> ProgramState:
    """
    Build once or watch, depending on --once.

    Returns:
        ProgramState with added field:
            - runResult: Dict mapping target key -> BuildStats (--once only)
    """
    state = inputstate.copy()
    toolchain = Toolchain.toolchain_createDefault()

    if state.once:
        LOG("Building all entries...", level=1)
        state.runResult = asyncio.run(targets_buildOnce(state.targets, toolchain))
        return state

    LOG(f"Watching with {state.strategy} strategy (Ctrl+C to stop)", level=1)
    try:
        asyncio.run(targets_watch(state, toolchain))
    except KeyboardInterrupt:
        LOG("Watch mode stopped", level=1)
    return state


def results_report(inputstate: ProgramState) -> ProgramState:
    """
    Summarize a --once run.

    Returns:
        ProgramState unchanged (terminal pipeline stage)

    Exits:
        1 if any build failed
    """
    state: ProgramState = inputstate.copy()
    if not state.once or state.runResult is None:
        return state

    failed = 0
    for key, stats in state.runResult.items():
        LOG(f"  {key}: {stats.summary()}", level=1)
        failed += stats.failed

    if failed:
        print(f"Error: {failed} build(s) failed", file=sys.stderr)
        sys.exit(1)
    LOG("\n✓ Build successful!", level=1)
    return state


@chris_plugin(
    parser=parser,
    title="minikit - Incremental front-end build watcher",
    category="Utility",
    min_memory_limit="100Mi",
    min_cpu_limit="500m",
)
def main(options: Namespace, inputdir: Path, outputdir: Path):
    """
    Main entry point - build and watch a front-end source tree.

    Orchestrates the pipeline:
        1. env_check: Validate and canonicalize paths
        2. targets_resolve: Single target or config-file targets
        3. targets_run: One-shot build or watch loop
        4. results_report: Summarize a one-shot build

    Args:
        options: CLI arguments from argparse
            - config: Optional[str] - Watch-target list inside inputdir
            - strategy: str - "targeted" or "rescan"
            - once: bool - Build and exit
            - verbosity: int - Logging verbosity level (1-3)
        inputdir: Source directory (or base for config src entries)
        outputdir: Output directory (or base for config out entries)
    """
    state: ProgramState = ProgramState.state_createFromNamespace(
        options=options, inputdir=inputdir, outputdir=outputdir
    )

    # Connect state to logger for entire pipeline
    state_connectToLogger(state)

    pipeline(state, env_check, targets_resolve, targets_run, results_report)


if __name__ == "__main__":
    main()  # type: ignore  # @chris_plugin decorator transforms signature
