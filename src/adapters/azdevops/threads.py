"""Filtrado de hilos de PR generados por el sistema.

Azure DevOps mezcla en los hilos de un PR los comentarios humanos con
notificaciones automáticas (políticas, votos, mensajes del servicio TFS).
La vista de detalle solo muestra los primeros.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from core.domain.models import Thread

_SYSTEM_PREFIX = "Microsoft.VisualStudio"
_POLICY_UPDATED = "Policy status has been updated"
_VOTED_RE = re.compile(r"voted\s*-?\d")


def is_voted_comment(content: str) -> bool:
    """`"Jane Smith voted 10"`, `"Bob voted -5"`..."""

    return bool(_VOTED_RE.search(content))


def is_system_thread(thread: Thread) -> bool:
    for comment in thread.comments:
        content = comment.content.strip()
        if comment.author.display_name.startswith(_SYSTEM_PREFIX):
            return True
        if content.startswith(_SYSTEM_PREFIX):
            return True
        if _POLICY_UPDATED in content:
            return True
        if is_voted_comment(content):
            return True
    return False


def filter_system_threads(threads: Iterable[Thread]) -> list[Thread]:
    return [thread for thread in threads if not is_system_thread(thread)]
