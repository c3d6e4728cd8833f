"""
Enrollments application.

Owns the student-to-batch enrollment record and the batch price list.
The payments app reaches it only through EnrollmentService and
BatchCatalogService, configured by the PAYMENTS_ENROLLMENT_BACKEND and
PAYMENTS_CATALOG_BACKEND settings.
"""
