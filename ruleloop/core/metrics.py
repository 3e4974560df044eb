"""
Metrics Collection for ruleloop

Provides system health metrics including:
- Automation execution statistics
- Error rates
- Generation service health (circuit breaker status)
- Rule counts (including active rules the loop cannot run)
- Rules failing most often
- Database connectivity
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, text
from sqlalchemy.orm import Session

from ..models.automation_execution import AutomationExecution
from ..models.automation_rule import AutomationRule
from .automation.dispatch import is_supported
from .circuit_breaker import CircuitBreaker, generation_circuit_breaker

logger = logging.getLogger(__name__)


class MetricsCollector:
    """
    Collects and aggregates metrics for the automation loop.

    Provides:
    - Execution stats (total, completed, failed)
    - Error rates (last hour by default)
    - Circuit breaker status of the generation service
    - Rule counts
    """

    def __init__(self, db_session: Session, circuit_breaker: Optional[CircuitBreaker] = None):
        """
        Initialize metrics collector.

        Args:
            db_session: SQLAlchemy database session
            circuit_breaker: Breaker to report on (default: generation_circuit_breaker)
        """
        self.db_session = db_session
        self.circuit_breaker = circuit_breaker or generation_circuit_breaker

    def get_execution_stats(self, hours: int = 24) -> Dict[str, Any]:
        """
        Get automation execution statistics.

        Args:
            hours: Number of hours to look back (default: 24)

        Returns:
            Dict with total, completed, failed and success_rate
        """
        try:
            since = datetime.utcnow() - timedelta(hours=hours)

            stats = self.db_session.query(
                AutomationExecution.status,
                func.count(AutomationExecution.id).label("count")
            ).filter(
                AutomationExecution.created_at >= since
            ).group_by(AutomationExecution.status).all()

            result = {
                "total": 0,
                "completed": 0,
                "failed": 0,
                "success_rate": 0.0,
                "avg_execution_time_ms": 0.0
            }

            for status, count in stats:
                result["total"] += count
                if status == "completed":
                    result["completed"] = count
                elif status == "failed":
                    result["failed"] = count

            if result["total"] > 0:
                result["success_rate"] = round(
                    (result["completed"] / result["total"]) * 100, 2
                )
                avg_ms = self.db_session.query(func.avg(AutomationExecution.execution_time_ms)).filter(
                    AutomationExecution.created_at >= since
                ).scalar()
                result["avg_execution_time_ms"] = round(float(avg_ms or 0.0), 2)

            return result

        except Exception as e:
            logger.error(f"Failed to get execution stats: {e}")
            return {
                "total": 0,
                "completed": 0,
                "failed": 0,
                "success_rate": 0.0,
                "avg_execution_time_ms": 0.0,
                "error": str(e)
            }

    def get_error_rate(self, hours: int = 1) -> Dict[str, Any]:
        """
        Get error rate for recent executions.

        Args:
            hours: Number of hours to look back (default: 1)
        """
        try:
            since = datetime.utcnow() - timedelta(hours=hours)

            total = self.db_session.query(func.count(AutomationExecution.id)).filter(
                AutomationExecution.created_at >= since
            ).scalar() or 0

            failed = self.db_session.query(func.count(AutomationExecution.id)).filter(
                and_(
                    AutomationExecution.created_at >= since,
                    AutomationExecution.status == "failed"
                )
            ).scalar() or 0

            error_rate = round((failed / total * 100), 2) if total > 0 else 0.0

            return {
                "period_hours": hours,
                "total_executions": total,
                "failed_executions": failed,
                "error_rate": error_rate
            }

        except Exception as e:
            logger.error(f"Failed to get error rate: {e}")
            return {
                "period_hours": hours,
                "total_executions": 0,
                "failed_executions": 0,
                "error_rate": 0.0,
                "error": str(e)
            }

    def get_circuit_breaker_status(self) -> Dict[str, Any]:
        try:
            status = self.circuit_breaker.get_status()
            return {
                "state": status["state"],
                "failure_count": status["failure_count"],
                "failure_threshold": status["failure_threshold"],
                "is_healthy": status["is_healthy"]
            }

        except Exception as e:
            logger.error(f"Failed to get circuit breaker status: {e}")
            return {
                "state": "unknown",
                "failure_count": 0,
                "failure_threshold": 0,
                "is_healthy": False,
                "error": str(e)
            }

    def get_rule_stats(self) -> Dict[str, Any]:
        """
        Get rule statistics.

        Returns:
            Dict with total_rules, active_rules, unsupported_active_rules
            (active but skipped by the loop) and rules_with_executions
        """
        try:
            total = self.db_session.query(func.count(AutomationRule.id)).scalar() or 0
            active_pairs = self.db_session.query(
                AutomationRule.trigger_type, AutomationRule.action_type
            ).filter(AutomationRule.is_active.is_(True)).all()
            unsupported = sum(1 for trigger, action in active_pairs if not is_supported(trigger, action))
            with_executions = self.db_session.query(
                func.count(func.distinct(AutomationExecution.rule_id))
            ).scalar() or 0

            return {
                "total_rules": total,
                "active_rules": len(active_pairs),
                "unsupported_active_rules": unsupported,
                "rules_with_executions": with_executions
            }

        except Exception as e:
            logger.error(f"Failed to get rule stats: {e}")
            return {
                "total_rules": 0,
                "active_rules": 0,
                "unsupported_active_rules": 0,
                "rules_with_executions": 0,
                "error": str(e)
            }

    def get_failing_rules(self, hours: int = 24, limit: int = 5) -> List[Dict[str, Any]]:
        """
        Rules with the most failed executions in the window, with their latest error.

        Returns:
            [{"rule_id": 3, "rule_name": "...", "failures": 7, "last_error": "..."}, ...]
        """
        try:
            since = datetime.utcnow() - timedelta(hours=hours)

            rows = self.db_session.query(
                AutomationExecution.rule_id,
                AutomationExecution.rule_name,
                func.count(AutomationExecution.id).label("failures"),
                func.max(AutomationExecution.id).label("latest_id")
            ).filter(
                and_(
                    AutomationExecution.created_at >= since,
                    AutomationExecution.status == "failed"
                )
            ).group_by(
                AutomationExecution.rule_id, AutomationExecution.rule_name
            ).order_by(func.count(AutomationExecution.id).desc()).limit(limit).all()

            failing = []
            for rule_id, rule_name, failures, latest_id in rows:
                latest = self.db_session.get(AutomationExecution, latest_id)
                failing.append({
                    "rule_id": rule_id,
                    "rule_name": rule_name,
                    "failures": failures,
                    "last_error": latest.error_message if latest else None
                })
            return failing

        except Exception as e:
            logger.error(f"Failed to get failing rules: {e}")
            return []

    def get_database_health(self) -> Dict[str, Any]:
        """Check database connectivity with a trivial query."""
        try:
            start = time.time()
            self.db_session.execute(text("SELECT 1")).fetchone()
            response_time = round((time.time() - start) * 1000, 2)

            return {
                "connected": True,
                "response_time_ms": response_time
            }

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "connected": False,
                "response_time_ms": None,
                "error": str(e)
            }

    def get_all_metrics(self) -> Dict[str, Any]:
        return {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "executions": self.get_execution_stats(hours=24),
            "error_rate": self.get_error_rate(hours=1),
            "circuit_breaker": self.get_circuit_breaker_status(),
            "rules": self.get_rule_stats(),
            "failing_rules": self.get_failing_rules(hours=24),
            "database": self.get_database_health()
        }


def check_system_health(db_session: Session, circuit_breaker: Optional[CircuitBreaker] = None) -> Dict[str, Any]:
    """
    Convenience function to check overall system health.

    Returns:
        Dict with healthy flag, per-component status and detected issues
    """
    collector = MetricsCollector(db_session, circuit_breaker=circuit_breaker)
    metrics = collector.get_all_metrics()

    issues = []
    components = {}

    db_health = metrics["database"]
    components["database"] = db_health["connected"]
    if not db_health["connected"]:
        issues.append("Database connection failed")

    cb_status = metrics["circuit_breaker"]
    components["generation"] = cb_status["is_healthy"]
    if not cb_status["is_healthy"]:
        issues.append(f"Generation circuit breaker is {cb_status['state']}")

    error_rate = metrics["error_rate"]["error_rate"]
    components["error_rate"] = error_rate < 50.0
    if error_rate >= 50.0:
        issues.append(f"High error rate: {error_rate}%")

    return {
        "healthy": len(issues) == 0,
        "components": components,
        "issues": issues,
        "metrics": metrics
    }
