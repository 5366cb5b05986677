"""
Admissions Module

Handles the PTC student admission workflow:
1. Application submission and supporting document uploads
2. Entrance exam scheduling with email confirmation
3. Exam outcome and admission decisions through a single state machine
4. Background jobs for exam reminders and exam-taken bookkeeping

API Endpoints:
- POST /admissions/applications - Submit new application
- PUT/DELETE /admissions/applications/{id}/documents/{type} - Manage documents
- GET /admissions/applications/{id}/status - Get application status
- /admin/admissions/applications/... - Admission office endpoints

Background Jobs (via APScheduler):
- admissions_send_exam_reminders: Runs hourly, reminds 24 hours before the exam
- admissions_mark_exams_taken: Runs hourly, marks past exams as taken
"""

from .jobs import register_admissions_jobs

__all__ = ["register_admissions_jobs"]
