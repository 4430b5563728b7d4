"""
Verification result store.

Rows in verification_results are immutable: re-verifying a work item adds a
new row, so the table is a complete history of verdicts.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import aiomysql

from verifier.models.verification import (
    VerificationDetails,
    VerificationResult,
    VerificationStatus,
)
from verifier.services.database import Database

logger = logging.getLogger(__name__)


RESULT_COLUMNS = (
    "id, project_name, issue_number, status, build_success, tests_passed, "
    "mocks_detected, details, created_at"
)


class VerificationResultStore:
    """Insert-only persistence for VerificationResult rows."""

    def __init__(self, database: Database):
        self._db = database

    @staticmethod
    def _row_to_result(row: Dict[str, Any]) -> VerificationResult:
        details = row.get("details")
        if isinstance(details, (str, bytes)):
            details = json.loads(details)

        return VerificationResult(
            id=row["id"],
            project_name=row["project_name"],
            issue_number=row["issue_number"],
            status=VerificationStatus(row["status"]),
            build_success=bool(row.get("build_success")),
            tests_passed=bool(row.get("tests_passed")),
            mocks_detected=bool(row.get("mocks_detected")),
            details=VerificationDetails(**(details or {})),
            created_at=row["created_at"],
        )

    async def insert(self, result: VerificationResult) -> str:
        """
        Append a verdict.

        Args:
            result: Result to store

        Returns:
            The result id
        """
        async with self._db.connection() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(
                    """
                    INSERT INTO verification_results
                    (id, project_name, issue_number, status, build_success,
                     tests_passed, mocks_detected, details, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        result.id,
                        result.project_name,
                        result.issue_number,
                        result.status.value,
                        result.build_success,
                        result.tests_passed,
                        result.mocks_detected,
                        json.dumps(result.details.model_dump(mode="json")),
                        result.created_at,
                    ),
                )
            await conn.commit()

        logger.info(
            f"Stored verification result {result.id} ({result.status.value}) "
            f"for {result.project_name} #{result.issue_number}"
        )
        return result.id

    async def list_for_issue(
        self,
        project_name: str,
        issue_number: int,
        limit: int = 5,
    ) -> List[VerificationResult]:
        """Verification history for a work item, newest first."""
        async with self._db.connection() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(
                    f"""
                    SELECT {RESULT_COLUMNS} FROM verification_results
                    WHERE project_name = %s AND issue_number = %s
                    ORDER BY created_at DESC
                    LIMIT %s
                    """,
                    (project_name, issue_number, limit),
                )
                rows = await cursor.fetchall()

        return [self._row_to_result(row) for row in rows]

    async def latest_for_issue(self, project_name: str, issue_number: int) -> Optional[VerificationResult]:
        results = await self.list_for_issue(project_name, issue_number, limit=1)
        return results[0] if results else None

    async def get(self, result_id: str) -> Optional[VerificationResult]:
        async with self._db.connection() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(
                    f"SELECT {RESULT_COLUMNS} FROM verification_results WHERE id = %s",
                    (result_id,),
                )
                row = await cursor.fetchone()

        return self._row_to_result(row) if row else None
