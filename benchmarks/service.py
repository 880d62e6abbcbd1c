"""
Business logic for benchmark operations.

A benchmark is the reference score (0..100) of one dimension within one
industry. The store keeps (dimension_id, industry_id) unique.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from shared.supabase_client import SupabaseService, is_unique_violation
from shared.permissions import Actor, require_super_admin, NotFoundError, ConflictError
from shared.validation import ValidationError, is_non_empty_string, is_number

logger = logging.getLogger(__name__)

MIN_VALUE = 0
MAX_VALUE = 100

DUPLICATE_BENCHMARK_MESSAGE = "Benchmark for this dimension and industry already exists"


class BulkValidationError(ValidationError):
    """Raised when no entry of a bulk request passes validation."""

    def __init__(self, details: List[str]):
        super().__init__("Validation failed")
        self.details = details


def _benchmark_error(benchmark: Any) -> Optional[str]:
    """Return the first validation error of a new benchmark, or None."""
    if not isinstance(benchmark, dict):
        return "Benchmark must be an object"
    if not is_non_empty_string(benchmark.get("dimension_id")):
        return "Dimension ID is required"
    if not is_non_empty_string(benchmark.get("industry_id")):
        return "Industry ID is required"
    value = benchmark.get("value")
    if not is_number(value):
        return "Value is required and must be a number"
    if value < MIN_VALUE or value > MAX_VALUE:
        return f"Value must be between {MIN_VALUE} and {MAX_VALUE}"
    return None


class BenchmarkService(SupabaseService):
    """Service class for benchmark CRUD and bulk creation."""

    async def list_benchmarks(
        self,
        assessment_id: Optional[str] = None,
        industry_id: Optional[str] = None,
        dimension_id: Optional[str] = None
    ) -> List[Dict]:
        """
        List benchmarks, newest first.

        Args:
            assessment_id: Only benchmarks whose dimension belongs to this assessment
            industry_id: Only benchmarks of this industry
            dimension_id: Only benchmarks of this dimension
        """
        if assessment_id:
            query = self.table("benchmarks") \
                .select("*, dimensions!inner(assessment_id)") \
                .eq("dimensions.assessment_id", assessment_id)
        else:
            query = self.table("benchmarks").select("*")

        if industry_id:
            query = query.eq("industry_id", industry_id)
        if dimension_id:
            query = query.eq("dimension_id", dimension_id)

        result = query.order("created_at", desc=True).execute()
        return result.data

    async def get_benchmark(self, benchmark_id: str) -> Dict:
        result = self.table("benchmarks") \
            .select("*") \
            .eq("id", benchmark_id) \
            .limit(1) \
            .execute()

        if not result.data:
            raise NotFoundError("Benchmark not found")

        return result.data[0]

    def _insert(self, benchmark: Dict[str, Any]) -> Dict:
        try:
            result = self.table("benchmarks").insert(benchmark).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise ConflictError(DUPLICATE_BENCHMARK_MESSAGE)
            raise

        if not result.data:
            raise Exception("Failed to create benchmark")

        return result.data[0]

    async def create_benchmark(self, actor: Actor, data: Dict[str, Any]) -> Dict:
        """
        Create a benchmark (super admin only).

        Raises:
            ForbiddenError: If the caller is not a super admin
            ValidationError: If a field is missing or out of range
            ConflictError: If the dimension/industry pair already has a benchmark
        """
        require_super_admin(actor)

        error = _benchmark_error(data)
        if error:
            raise ValidationError(error)

        benchmark = self._insert({
            "dimension_id": data["dimension_id"],
            "industry_id": data["industry_id"],
            "value": data["value"],
        })

        logger.info(f"Created benchmark {benchmark.get('id')}")
        return benchmark

    async def update_benchmark(self, actor: Actor, benchmark_id: str, data: Dict[str, Any]) -> Dict:
        """
        Partially update a benchmark (super admin only).

        Raises:
            ForbiddenError: If the caller is not a super admin
            ValidationError: If a field has the wrong type or nothing changes
            NotFoundError: If the benchmark doesn't exist
            ConflictError: If the new pair collides with another benchmark
        """
        require_super_admin(actor)

        updates: Dict[str, Any] = {}

        if "dimension_id" in data:
            if not isinstance(data["dimension_id"], str):
                raise ValidationError("Dimension ID must be a string")
            updates["dimension_id"] = data["dimension_id"]

        if "industry_id" in data:
            if not isinstance(data["industry_id"], str):
                raise ValidationError("Industry ID must be a string")
            updates["industry_id"] = data["industry_id"]

        if "value" in data:
            value = data["value"]
            if not is_number(value):
                raise ValidationError("Value must be a number")
            if value < MIN_VALUE or value > MAX_VALUE:
                raise ValidationError(f"Value must be between {MIN_VALUE} and {MAX_VALUE}")
            updates["value"] = value

        if not updates:
            raise ValidationError("No fields to update")

        updates["updated_at"] = datetime.now(timezone.utc).isoformat()

        try:
            result = self.table("benchmarks") \
                .update(updates) \
                .eq("id", benchmark_id) \
                .execute()
        except Exception as e:
            if is_unique_violation(e):
                raise ConflictError(DUPLICATE_BENCHMARK_MESSAGE)
            raise

        if not result.data:
            raise NotFoundError("Benchmark not found")

        return result.data[0]

    async def delete_benchmark(self, actor: Actor, benchmark_id: str) -> bool:
        """
        Delete a benchmark (super admin only).

        Raises:
            ForbiddenError: If the caller is not a super admin
            NotFoundError: If the benchmark doesn't exist
        """
        require_super_admin(actor)

        result = self.table("benchmarks") \
            .delete() \
            .eq("id", benchmark_id) \
            .execute()

        if not result.data:
            raise NotFoundError("Benchmark not found")

        logger.info(f"Deleted benchmark {benchmark_id}")
        return True

    async def bulk_create_benchmarks(self, actor: Actor, benchmarks: Any) -> Dict[str, Any]:
        """
        Validate and insert benchmarks one by one. A failing entry is
        reported in ``results`` and never stops the rest of the batch.

        Returns:
            dict with the created ``benchmarks``, ``count``, ``created``,
            ``failed``, per-entry ``results`` and the error ``details``

        Raises:
            ForbiddenError: If the caller is not a super admin
            ValidationError: If ``benchmarks`` is not a non-empty list, or no
                entry passes validation (``details`` then lists every error)
        """
        require_super_admin(actor)

        if not isinstance(benchmarks, list):
            raise ValidationError("Benchmarks must be an array")
        if not benchmarks:
            raise ValidationError("At least one benchmark is required")

        results: List[Optional[Dict[str, Any]]] = [None] * len(benchmarks)
        details: List[str] = []
        valid = []

        for index, benchmark in enumerate(benchmarks):
            error = _benchmark_error(benchmark)
            if error:
                details.append(f"Benchmark {index + 1}: {error}")
                results[index] = {"index": index, "success": False, "error": error}
            else:
                valid.append(index)

        if not valid:
            raise BulkValidationError(details)

        created = []
        for index in valid:
            benchmark = benchmarks[index]
            try:
                row = self._insert({
                    "dimension_id": benchmark["dimension_id"],
                    "industry_id": benchmark["industry_id"],
                    "value": benchmark["value"],
                })
                created.append(row)
                results[index] = {"index": index, "success": True, "id": row.get("id")}
            except Exception as e:
                if isinstance(e, ConflictError):
                    error = str(e)
                else:
                    logger.error(f"Error creating benchmark {index + 1}: {str(e)}")
                    error = "Failed to create benchmark"
                details.append(f"Benchmark {index + 1}: {error}")
                results[index] = {"index": index, "success": False, "error": error}

        logger.info(f"Bulk benchmark creation: {len(created)} created, {len(benchmarks) - len(created)} failed")

        return {
            "benchmarks": created,
            "count": len(created),
            "created": len(created),
            "failed": len(benchmarks) - len(created),
            "results": results,
            "details": details,
        }
