"""
Session templates.

A template describes a session as an ordered list of windows, each with an
optional command and directory, plus ``${VAR}`` placeholders that are filled in
from variable defaults and caller-supplied values. Templates are stored as
YAML files in the templates directory.
"""

import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..screen.logging_utils import log_template_applied
from ..utils.logging import LogContext, get_logger
from .controller import AttachController
from .exceptions import (
    InvalidTemplateError,
    PartialCreationError,
    SeshError,
    TemplateCreationError,
    TemplateNotFoundError,
    UnresolvedVariableError,
)

logger = get_logger(__name__, LogContext.TEMPLATE)

TEMPLATE_EXTENSIONS = (".yaml", ".yml")

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class WindowSpec(BaseModel):
    """A window created by a template."""

    name: str = Field(description="Window title")
    command: str | None = Field(default=None, description="Command run in the window")
    dir: str | None = Field(
        default=None, description="Working directory, relative to the template root"
    )


class TemplateVariable(BaseModel):
    """A substitution variable declared by a template."""

    prompt: str | None = Field(default=None, description="Prompt shown when asking")
    default: str | None = Field(default=None, description="Value used when not given")


class Template(BaseModel):
    """A session template."""

    name: str = Field(description="Template name")
    description: str | None = Field(default=None, description="Short description")
    root: str | None = Field(default=None, description="Root directory of the session")
    windows: list[WindowSpec] = Field(default_factory=list, description="Windows in order")
    variables: dict[str, TemplateVariable] = Field(
        default_factory=dict, description="Variables with prompts and defaults"
    )
    on_create: list[str] = Field(
        default_factory=list, description="Commands typed into the first window"
    )

    @field_validator("variables", mode="before")
    @classmethod
    def _empty_variables(cls, value: Any) -> Any:
        # "NAME:" with no body declares a variable without a default
        if isinstance(value, dict):
            return {key: spec or {} for key, spec in value.items()}
        return value

    @field_validator("windows", "on_create", mode="before")
    @classmethod
    def _empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    def placeholders(self) -> list[str]:
        """Variable names referenced anywhere in the template, in order."""
        found: dict[str, None] = {}
        for text in _substitutable_fields(self):
            for name in _PLACEHOLDER.findall(text):
                found.setdefault(name, None)
        return list(found)


@dataclass(frozen=True)
class ResolvedWindow:
    name: str
    command: str | None
    dir: str | None


@dataclass(frozen=True)
class ResolvedTemplate:
    """A template with every placeholder substituted."""

    name: str
    root: str | None
    windows: tuple[ResolvedWindow, ...]
    on_create: tuple[str, ...]


def _substitutable_fields(template: Template) -> list[str]:
    fields = [template.root] if template.root else []
    for window in template.windows:
        fields += [value for value in (window.command, window.dir) if value]
    fields += template.on_create
    return fields


def substitute(text: str, mapping: dict[str, str]) -> str:
    """Replace ``${VAR}`` placeholders.

    Raises:
        UnresolvedVariableError: A placeholder has no value in ``mapping``
    """
    missing = [name for name in _PLACEHOLDER.findall(text) if name not in mapping]
    if missing:
        raise UnresolvedVariableError(list(dict.fromkeys(missing)))
    return _PLACEHOLDER.sub(lambda match: mapping[match.group(1)], text)


def _join_dir(root: str | None, directory: str | None) -> str | None:
    if not directory:
        return root
    if root and not directory.startswith(("/", "~")):
        return posixpath.join(root, directory)
    return directory


def resolve_template(
    template: Template, substitutions: dict[str, str] | None = None
) -> ResolvedTemplate:
    """Substitute every placeholder before anything is created.

    Variable defaults are overlaid with ``substitutions``.

    Raises:
        UnresolvedVariableError: Naming every variable without a value
    """
    mapping = {
        key: spec.default
        for key, spec in template.variables.items()
        if spec.default is not None
    }
    mapping.update(substitutions or {})

    missing = [name for name in template.placeholders() if name not in mapping]
    if missing:
        raise UnresolvedVariableError(missing, target=template.name)

    root = substitute(template.root, mapping) if template.root else None
    windows = tuple(
        ResolvedWindow(
            name=window.name,
            command=substitute(window.command, mapping) if window.command else None,
            dir=_join_dir(root, substitute(window.dir, mapping) if window.dir else None),
        )
        for window in template.windows
    )
    return ResolvedTemplate(
        name=template.name,
        root=root,
        windows=windows,
        on_create=tuple(substitute(command, mapping) for command in template.on_create),
    )


class TemplateEngine:
    """Creates sessions from templates through the attach controller."""

    def __init__(self, controller: AttachController) -> None:
        self.controller = controller

    async def instantiate(
        self,
        template: Template,
        substitutions: dict[str, str] | None = None,
        session_name: str | None = None,
    ) -> str:
        """Create a session from a template.

        Args:
            template: Template to instantiate
            substitutions: Variable values, overriding template defaults
            session_name: Session name, defaults to the template name

        Returns:
            Identifier of the new session

        Raises:
            UnresolvedVariableError: Raised before any command is issued
            TemplateCreationError: The session itself could not be created
            PartialCreationError: The session exists but setup did not finish
        """
        plan = resolve_template(template, substitutions)
        name = session_name or plan.name
        first = plan.windows[0] if plan.windows else None

        try:
            identifier = await self.controller.create(
                name,
                working_directory=first.dir if first else plan.root,
                command=first.command if first else None,
            )
        except SeshError as e:
            raise TemplateCreationError(
                f"Cannot create session {name} from template {template.name}",
                cause=e,
                target=name,
                detail=str(e),
            ) from e

        completed = [f"session {name}"]
        step = ""
        try:
            for window in plan.windows[1:]:
                step = f"window {window.name}"
                await self.controller.add_window(
                    identifier, window.name, window.dir, window.command
                )
                completed.append(step)

            if first is not None:
                step = f"title {first.name}"
                # The session's first window is window 0
                await self.controller.title_window(identifier, 0, first.name)
                completed.append(step)

            for command in plan.on_create:
                step = f"on_create {command}"
                await self.controller.send_keys(identifier, f"{command}\n", window=0)
                completed.append(step)
        except SeshError as e:
            logger.warning(
                "Template partially applied",
                session=identifier,
                template=template.name,
                failed=step,
            )
            raise PartialCreationError(identifier, completed, step, e) from e

        log_template_applied(identifier, template.name, [w.name for w in plan.windows])
        return identifier


def load_template(path: str | Path) -> Template:
    """Load and validate a template file.

    A template without a ``name`` is named after its file.

    Raises:
        InvalidTemplateError: The file is not valid YAML or fails validation
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InvalidTemplateError(f"Invalid YAML in template {path}", detail=str(e))
    except OSError as e:
        raise InvalidTemplateError(f"Cannot read template {path}", detail=str(e))

    if not isinstance(data, dict):
        raise InvalidTemplateError(f"Template {path} must be a mapping")
    data.setdefault("name", path.stem)

    try:
        return Template.model_validate(data)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise InvalidTemplateError(
            f"Invalid template {path}: {field}: {error['msg']}",
            field=field,
            target=str(path),
        )


def find_template(name: str, templates_dir: str | Path) -> Template:
    """Load ``<name>.yaml`` or ``<name>.yml`` from the templates directory."""
    directory = Path(templates_dir).expanduser()
    for extension in TEMPLATE_EXTENSIONS:
        path = directory / f"{name}{extension}"
        if path.exists():
            return load_template(path)
    raise TemplateNotFoundError(f"Template '{name}' not found", target=name)


def list_templates(templates_dir: str | Path) -> list[Template]:
    """All valid templates in the directory, sorted by name."""
    directory = Path(templates_dir).expanduser()
    if not directory.is_dir():
        return []

    templates = []
    for path in sorted(directory.iterdir()):
        if path.suffix not in TEMPLATE_EXTENSIONS:
            continue
        try:
            templates.append(load_template(path))
        except InvalidTemplateError as e:
            logger.warning("Skipping invalid template", path=str(path), error=str(e))

    return sorted(templates, key=lambda template: template.name)


def example_template() -> str:
    """A sample template document."""
    sample = {
        "name": "webdev",
        "description": "Editor, dev server and git in one session",
        "root": "${PROJECT_DIR}",
        "variables": {
            "PROJECT_DIR": {"prompt": "Project directory", "default": "~/src/app"},
        },
        "windows": [
            {"name": "editor", "command": "vim ."},
            {"name": "server", "command": "npm run dev"},
            {"name": "git", "command": "git status", "dir": "."},
        ],
        "on_create": ["echo ready"],
    }
    return yaml.safe_dump(sample, sort_keys=False)
