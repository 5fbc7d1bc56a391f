# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Joint awaiting of independent pipeline sub-tasks.

The pipeline fans out only for independent I/O (file copies, symlinks, the
user/system install probes). gather_all runs such a fan-out inside an
asyncio.TaskGroup: when one sub-task fails, its siblings are cancelled and
awaited before the failure propagates, and the first failure is re-raised
on its own rather than wrapped in an ExceptionGroup.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from typing import TypeVar

T = TypeVar("T")


async def gather_all(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Await every awaitable concurrently and return results in input order.

    Raises:
        Exception: The first exception raised by any sub-task, unwrapped.
    """
    tasks: list[asyncio.Task[T]] = []
    try:
        async with asyncio.TaskGroup() as group:
            for aw in aws:
                tasks.append(group.create_task(_as_coroutine(aw)))
    except BaseExceptionGroup as group_error:
        raise group_error.exceptions[0]
    return [task.result() for task in tasks]


async def _as_coroutine(aw: Awaitable[T]) -> T:
    return await aw
