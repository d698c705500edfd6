"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP/Azure DevOps) lean config de forma consistente.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "azdo-tui"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "azdo-tui"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "azdo-tui"
    return Path.home() / ".config" / "azdo-tui"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# azdo-tui user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    # El PAT vive aquí: el archivo es 0600 antes de escribir nada.
    fd = os.open(env_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    if not sys.platform.startswith("win"):
        os.fchmod(fd, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write("\n".join(lines) + "\n")
    return env_path


class ProjectEntry(BaseModel):
    """Proyecto configurado: nombre de API + nombre visible opcional."""

    name: str = Field(..., min_length=1, description="Nombre del proyecto en la API.")
    display_name: str | None = Field(
        default=None,
        description="Etiqueta para la UI (si difiere del nombre de API).",
    )


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="AZDO_TUI_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    organization: str = Field(
        default="",
        description="Organización de Azure DevOps (dev.azure.com/<org>).",
    )
    projects: Annotated[list[ProjectEntry], NoDecode] = Field(
        default_factory=list,
        description="Proyectos a agregar (nombres o objetos {name, display_name}).",
    )
    pat: SecretStr | None = Field(
        default=None,
        description="Personal Access Token (Code/Build/Work Items: Read).",
    )

    polling_interval_seconds: int = Field(
        default=60,
        gt=0,
        description="Intervalo de refresco del dashboard (segundos).",
    )
    top: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Máximo de elementos pedidos a cada proyecto.",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout por request (segundos).",
    )
    user_agent: str = Field(
        default="azdo-tui/0.1",
        min_length=1,
        description="User-Agent para peticiones a Azure DevOps.",
    )
    theme: str = Field(
        default="dark",
        min_length=1,
        description="Tema de colores de la UI.",
    )

    @field_validator("projects", mode="before")
    @classmethod
    def _coerce_projects(cls, value: Any) -> Any:
        # Admite JSON, "a,b,c" o una lista mixta de strings/objetos.
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return []
            if text.startswith("["):
                value = json.loads(text)
            else:
                value = [part.strip() for part in text.split(",") if part.strip()]
        if isinstance(value, list):
            return [{"name": item} if isinstance(item, str) else item for item in value]
        return value

    def project_names(self) -> list[str]:
        return [entry.name for entry in self.projects]

    def display_name_for(self, project: str) -> str:
        """Nombre visible del proyecto; el nombre de API si no hay alias."""

        for entry in self.projects:
            if entry.name == project and entry.display_name:
                return entry.display_name
        return project

    def pat_value(self) -> str:
        return self.pat.get_secret_value() if self.pat else ""
