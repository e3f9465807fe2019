# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Outcome of a request flow, turned into an HTTP response only at the edge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response


@dataclass(frozen=True)
class Ok:
    body: str = ""
    html: bool = False


@dataclass(frozen=True)
class Redirect:
    location: str
    status_code: int = 303


@dataclass(frozen=True)
class Rejected:
    status_code: int
    body: str = ""
    html: bool = False


FlowResult = Union[Ok, Redirect, Rejected]


def to_response(result: FlowResult) -> Response:
    if isinstance(result, Redirect):
        return RedirectResponse(url=result.location, status_code=result.status_code)
    status_code = 200 if isinstance(result, Ok) else result.status_code
    if result.html:
        return HTMLResponse(result.body, status_code=status_code)
    return PlainTextResponse(result.body, status_code=status_code)
