"""External collaborators used by the stage handlers."""

from __future__ import annotations

import importlib
from dataclasses import dataclass, fields
from typing import Any, Callable, Mapping, Optional, Union

from voxnotes.config import logger
from voxnotes.integrations import ffmpeg, notion, summarization, telegram, transcription

TranscodeFn = Callable[[str], str]
TranscribeFn = Callable[[str], str]
SummarizeFn = Callable[[str], str]
CreateRemoteNoteFn = Callable[[str, str, str, str], str]
CreateRemoteDatabaseFn = Callable[[str, str], str]
NotifyFn = Callable[[Union[int, str], str], None]
ProbeDurationFn = Callable[[str], float]


@dataclass
class PipelineServices:
    """Collection of callables used by pipeline stages."""

    transcode: TranscodeFn
    transcribe: TranscribeFn
    summarize: SummarizeFn
    create_remote_note: CreateRemoteNoteFn
    create_remote_database: CreateRemoteDatabaseFn
    notify: NotifyFn
    probe_duration: ProbeDurationFn


SERVICE_NAMES = tuple(item.name for item in fields(PipelineServices))


def default_pipeline_services() -> PipelineServices:
    return PipelineServices(
        transcode=ffmpeg.transcode,
        transcribe=transcription.transcribe,
        summarize=summarization.summarize,
        create_remote_note=notion.create_remote_note,
        create_remote_database=notion.create_database,
        notify=telegram.notify,
        probe_duration=ffmpeg.probe_duration,
    )


def _load_callable(path: str) -> Callable[..., Any]:
    module_name, _, attr = path.rpartition(":")
    if not module_name:
        raise ValueError(f"Invalid callable path '{path}'. Expected 'module:attr'.")
    module = importlib.import_module(module_name)
    target = getattr(module, attr, None)
    if target is None:
        raise AttributeError(f"{module_name!r} has no attribute {attr!r}")
    if not callable(target):
        raise TypeError(f"{path!r} is not callable.")
    return target


def build_services(
    config: Optional[Mapping[str, Any]] = None,
    base: Optional[PipelineServices] = None,
) -> PipelineServices:
    """Build the service collection, replacing entries named in ``config``.

    Values may be callables or ``module:attr`` strings.
    """
    base = base or default_pipeline_services()
    if not config:
        return base

    unknown = sorted(set(config) - set(SERVICE_NAMES))
    if unknown:
        raise ValueError(f"Unknown pipeline services: {', '.join(unknown)}")

    replacements: dict[str, Callable[..., Any]] = {}
    for key in SERVICE_NAMES:
        candidate = config.get(key)
        if not candidate:
            continue
        if isinstance(candidate, str):
            candidate = _load_callable(candidate)
        if not callable(candidate):
            raise TypeError(f"Service override for '{key}' must be callable.")
        replacements[key] = candidate

    services = PipelineServices(
        **{name: replacements.get(name, getattr(base, name)) for name in SERVICE_NAMES}
    )
    logger.debug(
        "Pipeline services constructed",
        extra={"overrides": sorted(replacements.keys())},
    )
    return services


__all__ = [
    "PipelineServices",
    "SERVICE_NAMES",
    "build_services",
    "default_pipeline_services",
]
