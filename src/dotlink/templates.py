"""Seed machine-specific files from templates."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable

from .config import TemplateSpec
from .environment import Environment
from .filesystem import ensure_parent, lexists
from .models import LinkOptions, TemplateAction, TemplateResult

logger = logging.getLogger(__name__)


def validate_templates(
    templates: Iterable[TemplateSpec],
    env: Environment,
    source_dir: Path,
) -> list[tuple[Path, Path]]:
    """Resolve every template to ``(template, target)`` paths.

    Raises ``PathEscapeError`` if any target lies outside home; nothing is
    touched before all targets have been checked.
    """

    planned = [(source_dir / spec.template, env.resolve_target(spec.target)) for spec in templates]
    for _, target in planned:
        env.ensure_within_home(target, label="Template target")
    return planned


def generate_templates(
    templates: Iterable[TemplateSpec],
    env: Environment,
    source_dir: Path,
    options: LinkOptions = LinkOptions(),
) -> list[TemplateResult]:
    """Copy each template to its target unless the target already exists.

    Targets are user-owned once created and are never overwritten.
    """

    results: list[TemplateResult] = []
    for template, target in validate_templates(templates, env, source_dir):
        if lexists(target):
            results.append(TemplateResult(template, target, TemplateAction.EXISTS))
            continue
        if not template.is_file():
            logger.error("Template not found: %s", template)
            results.append(TemplateResult(template, target, TemplateAction.TEMPLATE_MISSING))
            continue
        if options.dry_run:
            results.append(TemplateResult(template, target, TemplateAction.DRY_RUN))
            continue

        ensure_parent(target)
        shutil.copyfile(template, target)
        logger.debug("Created %s from template %s", target, template)
        results.append(TemplateResult(template, target, TemplateAction.CREATED))

    return results
