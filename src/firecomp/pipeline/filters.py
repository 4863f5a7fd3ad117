"""Declarative ffmpeg filter graphs.

A graph is an ordered list of :class:`FilterStep` objects, each naming a
filter, its keyed options, and the labelled pads it reads and writes. The
graph renders to the string ffmpeg expects for ``-filter_complex``, e.g.::

    [0:v]scale=w=640:h=360:flags=lanczos[bg];[1:v]colorkey=...[ck]
"""

from __future__ import annotations

from pydantic import BaseModel, Field

OptionValue = str | int | float

# Characters with meaning inside a filtergraph description.
_SPECIAL = ("\\", "'", ":", ",", ";", "[", "]")


class FilterStep(BaseModel):
    filter: str
    options: dict[str, OptionValue] = Field(default_factory=dict)
    inputs: list[str] = Field(default_factory=list)
    outputs: list[str] = Field(default_factory=list)

    def render(self) -> str:
        pads_in = "".join(f"[{label}]" for label in self.inputs)
        pads_out = "".join(f"[{label}]" for label in self.outputs)
        body = self.filter
        if self.options:
            args = ":".join(f"{k}={_escape(v)}" for k, v in self.options.items())
            body = f"{body}={args}"
        return f"{pads_in}{body}{pads_out}"


def build_filter_complex(steps: list[FilterStep]) -> str:
    """Render a filter graph for ``-filter_complex``."""
    if not steps:
        raise ValueError("Filter graph must contain at least one step")
    return ";".join(step.render() for step in steps)


def _escape(value: OptionValue) -> str:
    text = str(value)
    for ch in _SPECIAL:
        text = text.replace(ch, f"\\{ch}")
    return text
