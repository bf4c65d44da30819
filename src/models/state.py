"""
Program state model and pipeline helper

Defines ProgramState dataclass for the functional pipeline pattern and
the pipeline() helper for composing CLI stages.
"""

from pathlib import Path
from argparse import Namespace
from typing import Any, Optional, Type, TypeVar, List, Dict, Callable
from dataclasses import dataclass, field


PS = TypeVar("PS", bound="ProgramState")


@dataclass
class ProgramState:
    """
    Central state container for the CLI pipeline (state bus pattern).

    This dataclass carries all program state through the functional pipeline,
    with each stage adding new fields as the run progresses.

    Pipeline stages and their state additions:
        - Initial: inputdir, outputdir, verbosity, config, strategy, once
        - env_check: sourceRoot, outputRoot, configFile, envOK
        - targets_resolve: targets
        - targets_run: runResult
        - results_report: (no additions, terminal stage)

    Attributes:
        inputdir: Directory holding the sources (or the config file)
        outputdir: Base output directory for compiled artifacts
        verbosity: Logging verbosity level (1-3)
        config: Optional config filename (relative to inputdir)
        strategy: "targeted" or "rescan"
        once: Build every entry once and exit instead of watching
        envOK: Environment validation passed
        sourceRoot: Canonical inputdir
        outputRoot: Canonical outputdir
        configFile: Resolved config file path, None in single-target mode
        targets: Watch targets to build or watch
        runResult: Per-target build counters after a --once run
    """

    # CLI arguments
    inputdir: Optional[Path] = field(default=None)
    outputdir: Optional[Path] = field(default=None)
    verbosity: int = field(default=1)
    config: Optional[str] = field(default=None)
    strategy: str = field(default="targeted")
    once: bool = field(default=False)

    # Pipeline state
    envOK: bool = field(default=False)
    sourceRoot: Path = field(default=Path("/"))
    outputRoot: Path = field(default=Path("/"))
    configFile: Optional[Path] = field(default=None)
    targets: List[Any] = field(default_factory=list)  # List[WatchTarget] at runtime
    runResult: Optional[Dict[str, Any]] = field(default=None)

    @classmethod
    def state_createFromNamespace(
        cls: Type["ProgramState"], options: Namespace, inputdir: Path, outputdir: Path
    ) -> "ProgramState":
        """
        Create ProgramState from argparse Namespace and directory paths.

        Merges CLI options with explicitly provided directories to create
        the initial program state for the pipeline.

        Args:
            options: Parsed CLI arguments (config, strategy, once, verbosity)
            inputdir: Directory containing source files
            outputdir: Directory for compiled output

        Returns:
            ProgramState instance with all CLI options as attributes
        """
        options_dict = vars(options)

        import dataclasses
        valid_fields = {f.name for f in dataclasses.fields(cls)}

        # Drop argparse-only keys (inputdir/outputdir come in explicitly)
        filtered_options = {k: v for k, v in options_dict.items() if k in valid_fields}

        merged_args = {**filtered_options, "inputdir": inputdir, "outputdir": outputdir}

        return cls(**merged_args)

    def copy(self: PS) -> PS:
        """
        Creates a shallow copy of the ProgramState instance.

        Returns:
            A new ProgramState instance.
        """
        return type(self)(**self.__dict__)


def pipeline(
    initial_state: ProgramState, *stages: Callable[[ProgramState], ProgramState]
) -> ProgramState:
    """
    Execute a functional pipeline of state transformations.

    Each stage is a function (ProgramState) -> ProgramState that receives
    the output of the previous stage and returns a new state.

    Args:
        initial_state: Starting ProgramState
        *stages: Variable number of stage functions to execute in order

    Returns:
        Final ProgramState after all transformations

    Example:
        final_state = pipeline(
            initial_state,
            env_check,
            targets_resolve,
            targets_run,
            results_report
        )
    """
    from functools import reduce
    return reduce(lambda state, stage: stage(state), stages, initial_state)
