"""Errores del dominio de agregación multi-proyecto.

Los errores de transporte (HTTP/parseo) viven en `adapters.azdevops.errors`;
aquí solo están los que produce el Core al construir o agregar.
"""

from __future__ import annotations

from collections.abc import Mapping


class MultiClientConfigError(ValueError):
    """Entrada inválida al construir un `MultiClient` (no se crea ningún objeto)."""


class AllProjectsFailedError(RuntimeError):
    """Todos los proyectos fallaron en una consulta agregada.

    `errors` conserva la excepción de cada proyecto para diagnóstico.
    """

    def __init__(self, errors: Mapping[str, BaseException]) -> None:
        self.errors = dict(errors)
        details = "; ".join(f"{project}: {exc}" for project, exc in self.errors.items())
        super().__init__(f"all projects failed: {details}")
