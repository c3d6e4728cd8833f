"""
Tests for EnrollmentService and BatchCatalogService.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import IntegrityError

from authentication.tests.factories import StudentFactory, TeacherFactory
from enrollments.models import BatchEnrollment
from enrollments.services import BatchCatalogService, EnrollmentService
from enrollments.tests.factories import BatchOfferingFactory


@pytest.fixture
def student(db):
    return StudentFactory()


class TestEnroll:
    def test_creates_enrollment(self, student):
        result = EnrollmentService.enroll(student, batch_id="batch-1", course_id="course-1")

        assert result.success is True
        enrollment = result.data
        assert enrollment.student == student
        assert enrollment.batch_id == "batch-1"
        assert enrollment.course_id == "course-1"
        assert enrollment.source_payment_order_id is None

    def test_second_enroll_returns_existing(self, student):
        first = EnrollmentService.enroll(student, batch_id="batch-1").data

        second = EnrollmentService.enroll(student, batch_id="batch-1", course_id="other")

        assert second.success is True
        assert second.data.id == first.id
        assert BatchEnrollment.objects.filter(student=student).count() == 1

    def test_separate_batches(self, student):
        EnrollmentService.enroll(student, batch_id="batch-1")
        EnrollmentService.enroll(student, batch_id="batch-2")

        assert BatchEnrollment.objects.filter(student=student).count() == 2

    def test_lost_insert_race_returns_winner(self, student):
        winner = BatchEnrollment.objects.create(student=student, batch_id="batch-1")

        with patch.object(BatchEnrollment.objects, "filter") as mock_filter:
            mock_filter.return_value.first.return_value = None
            with patch.object(
                BatchEnrollment.objects, "create", side_effect=IntegrityError("duplicate")
            ):
                result = EnrollmentService.enroll(student, batch_id="batch-1")

        assert result.success is True
        assert result.data.id == winner.id


class TestBatchCatalog:
    def test_get_offering(self, db):
        teacher = TeacherFactory()
        BatchOfferingFactory(batch_id="batch-9", teacher=teacher, price=Decimal("1500.00"))

        result = BatchCatalogService.get_offering("batch-9")

        assert result.success is True
        assert result.data.teacher == teacher
        assert result.data.price == Decimal("1500.00")

    def test_unknown_batch(self, db):
        result = BatchCatalogService.get_offering("batch-missing")

        assert result.success is False
        assert result.error_code == "BATCH_NOT_FOUND"

    def test_is_enrolled(self, student):
        EnrollmentService.enroll(student, batch_id="batch-1")

        assert EnrollmentService.is_enrolled(student, "batch-1") is True
        assert EnrollmentService.is_enrolled(student, "batch-2") is False
