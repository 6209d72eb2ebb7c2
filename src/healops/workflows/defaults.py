"""Built-in workflows registered when the engine starts."""

from __future__ import annotations

from typing import Any, Dict, List


def default_workflows() -> List[Dict[str, Any]]:
    return [
        {
            "id": "system-health-check",
            "name": "System Health Check",
            "description": "Automated system health monitoring",
            "steps": [
                {"id": "cpu", "action": "monitor_cpu", "timeout_ms": 5000, "retry_count": 3},
                {"id": "memory", "action": "monitor_memory", "timeout_ms": 5000, "retry_count": 3},
                {"id": "disk", "action": "monitor_disk", "timeout_ms": 5000, "retry_count": 3},
                {
                    "id": "report",
                    "action": "create_health_report",
                    "timeout_ms": 10000,
                    "retry_count": 1,
                },
            ],
            "schedule": "@every 5m",
            "triggers": [],
        },
        {
            "id": "security-audit",
            "name": "Security Audit",
            "description": "Automated security scanning and compliance",
            "steps": [
                {
                    "id": "scan",
                    "action": "security_scan",
                    "timeout_ms": 30000,
                    "retry_count": 2,
                    "parameters": {"target": "system"},
                },
                {
                    "id": "compliance",
                    "action": "compliance_check",
                    "timeout_ms": 15000,
                    "retry_count": 2,
                    "parameters": {"target": "system"},
                },
                {
                    "id": "report",
                    "action": "security_report",
                    "timeout_ms": 10000,
                    "retry_count": 1,
                    "parameters": {"target": "system", "scan": "{{ scan.detail }}"},
                },
            ],
            # daily at 02:00 (seconds-first cron)
            "schedule": "0 0 2 * * *",
            "triggers": [],
        },
    ]
