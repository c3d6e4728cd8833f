"""
Enrollment and batch catalogue services.

EnrollmentService.enroll() is idempotent: enrolling a student who is
already in the batch returns the existing enrollment instead of
raising. Two concurrent calls race on the (student, batch_id) unique
constraint and both end up with the same row.

Usage:
    from enrollments.services import BatchCatalogService, EnrollmentService

    result = EnrollmentService.enroll(student, batch_id="b-1", course_id="c-1")
    enrollment = result.data

    offering = BatchCatalogService.get_offering("b-1").data
    offering.price, offering.teacher
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult
from enrollments.models import BatchEnrollment, BatchOffering

if TYPE_CHECKING:
    from uuid import UUID

    from authentication.models import User

logger = logging.getLogger(__name__)


class EnrollmentService(BaseService):
    """Grants batch access to students."""

    @classmethod
    def enroll(
        cls,
        student: User,
        batch_id: str,
        course_id: str = "",
        payment_order_id: UUID | None = None,
    ) -> ServiceResult[BatchEnrollment]:
        """
        Enroll a student in a batch, or return the existing enrollment.

        Args:
            student: Student to enroll
            batch_id: Batch identifier
            course_id: Course identifier (informational)
            payment_order_id: Order that paid for the enrollment

        Returns:
            ServiceResult with the BatchEnrollment
        """
        existing = BatchEnrollment.objects.filter(
            student=student, batch_id=batch_id
        ).first()
        if existing:
            logger.debug(
                "Student already enrolled",
                extra={"student_id": student.pk, "batch_id": batch_id},
            )
            return ServiceResult.success(existing)

        try:
            with transaction.atomic():
                enrollment = BatchEnrollment.objects.create(
                    student=student,
                    batch_id=batch_id,
                    course_id=course_id,
                    source_payment_order_id=payment_order_id,
                )
        except IntegrityError:
            enrollment = BatchEnrollment.objects.get(student=student, batch_id=batch_id)
            return ServiceResult.success(enrollment)

        logger.info(
            "Student enrolled in batch",
            extra={
                "student_id": student.pk,
                "batch_id": batch_id,
                "course_id": course_id,
                "payment_order_id": str(payment_order_id) if payment_order_id else None,
            },
        )
        return ServiceResult.success(enrollment)

    @classmethod
    def is_enrolled(cls, student: User, batch_id: str) -> bool:
        return BatchEnrollment.objects.filter(student=student, batch_id=batch_id).exists()


class BatchCatalogService(BaseService):
    """
    Server-side pricing for batches.

    Payments resolve what a batch costs, who teaches it and which
    acquisition source it counts under from here, never from the client.
    """

    @classmethod
    def get_offering(cls, batch_id: str) -> ServiceResult[BatchOffering]:
        """
        Look up the offering for a batch.

        Returns:
            ServiceResult with the BatchOffering, or a BATCH_NOT_FOUND
            failure for unknown batches
        """
        offering = (
            BatchOffering.objects.select_related("teacher")
            .filter(batch_id=batch_id)
            .first()
        )
        if offering is None:
            return ServiceResult.failure(
                f"Batch '{batch_id}' is not in the catalogue",
                error_code="BATCH_NOT_FOUND",
                details={"batch_id": batch_id},
            )
        return ServiceResult.success(offering)
