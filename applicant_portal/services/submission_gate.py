# -*- coding: utf-8 -*-
"""Completeness and consent check in front of the `submitted` transition.

The same function runs in the client engine (to tell the applicant early)
and inside the upsert engine (the check that actually counts).
"""
from typing import Any, List, Mapping, Optional

from applicant_portal.errors import GateIssue
from applicant_portal.services.field_catalog import CHOICE_KINDS, FieldCatalog, FieldDescriptor

CONSENT_FIELD = "consent_given"
CONSENT_MESSAGE = "consent required"


def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _check_value(d: FieldDescriptor, value: Any) -> Optional[str]:
    if isinstance(value, str):
        text = value.strip()
        if d.min_length is not None and len(text) < d.min_length:
            return d.message or f"{d.name} must be at least {d.min_length} characters"
        if d.max_length is not None and len(text) > d.max_length:
            return f"{d.name} must be at most {d.max_length} characters"
        if d.kind in CHOICE_KINDS and d.choices and text not in d.choices:
            return d.message or f"{d.name} must be one of: {', '.join(d.choices)}"
    elif d.kind != "checkbox" and isinstance(value, bool):
        return f"{d.name} must be text"
    return None


def check_submission(fields: Mapping[str, Any], consent_given: Any, catalog: FieldCatalog) -> List[GateIssue]:
    issues: List[GateIssue] = []
    for d in catalog:
        value = fields.get(d.name)
        if _is_empty(value):
            if d.required:
                issues.append(GateIssue(d.name, d.message or f"{d.name} is required"))
            continue
        problem = _check_value(d, value)
        if problem:
            issues.append(GateIssue(d.name, problem))
    if consent_given is not True:
        issues.append(GateIssue(CONSENT_FIELD, CONSENT_MESSAGE))
    return issues
