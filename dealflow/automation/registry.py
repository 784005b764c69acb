"""
Dealflow Template Registry

Storage and retrieval of workflow template definitions.
"""

from __future__ import annotations

import copy
from typing import Dict, List, Optional

import structlog

from dealflow.automation.errors import InvalidTemplateError, TemplateNotFound
from dealflow.automation.types import WorkflowTemplate

logger = structlog.get_logger(__name__)


class TemplateRegistry:
    """
    Registry for workflow templates.

    Templates are copied on registration so later edits to the caller's
    object never leak into running executions.
    """

    def __init__(self, validate: bool = True):
        self.validate = validate
        self._templates: Dict[str, WorkflowTemplate] = {}

    def register(self, template: WorkflowTemplate) -> str:
        """Register a template, replacing any template with the same id."""
        if self.validate:
            errors = template.validate()
            if errors:
                raise InvalidTemplateError(template.id, errors)

        replaced = template.id in self._templates
        self._templates[template.id] = copy.deepcopy(template)

        logger.info(
            "template_registered",
            template_id=template.id,
            name=template.name,
            steps=len(template.steps),
            rules=len(template.automation_rules),
            replaced=replaced,
        )

        return template.id

    def get(self, template_id: str) -> Optional[WorkflowTemplate]:
        """Get a template by ID."""
        return self._templates.get(template_id)

    def require(self, template_id: str) -> WorkflowTemplate:
        """Get a template by ID or raise TemplateNotFound."""
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        return template

    def unregister(self, template_id: str) -> bool:
        """Remove a template."""
        removed = self._templates.pop(template_id, None) is not None
        if removed:
            logger.info("template_unregistered", template_id=template_id)
        return removed

    def list(
        self,
        stage: Optional[str] = None,
        active_only: bool = False,
    ) -> List[WorkflowTemplate]:
        """List templates, optionally filtered by stage or active flag."""
        templates = list(self._templates.values())

        if stage:
            templates = [t for t in templates if t.stage == stage]

        if active_only:
            templates = [t for t in templates if t.is_active]

        return templates

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._templates

    def __len__(self) -> int:
        return len(self._templates)
