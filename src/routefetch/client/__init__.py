"""Executors that turn a finished call chain into exactly one HTTP fetch.

Classes:
    :class:`AsyncExecutor` -- non-blocking, backed by :class:`httpx.AsyncClient`.
    :class:`SyncExecutor` -- blocking, backed by :class:`httpx.Client`.

Both share request building, header merging, decoding and Result assembly
through :class:`~routefetch.client.base.BaseExecutor`, and both accept a
caller-owned httpx client or transport through
:class:`~routefetch.models.ClientOptions`.
"""

from routefetch.client.async_client import AsyncExecutor
from routefetch.client.base import BaseExecutor
from routefetch.client.response import clone_response
from routefetch.client.sync_client import SyncExecutor

__all__ = ["AsyncExecutor", "BaseExecutor", "SyncExecutor", "clone_response"]
