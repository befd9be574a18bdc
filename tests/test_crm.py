"""
Tests for back-office tasks and leads
"""

import pytest

from online_banking.crm import LeadStatus, TaskPriority, TaskStatus
from tests.factories import make_system, make_user


class TestCrmTasks:
    """Test task tracking"""

    def setup_method(self):
        self.system = make_system()
        self.crm = self.system.crm

    def test_create_requires_title(self):
        """Test tasks need a title"""
        with pytest.raises(ValueError, match="Title is required"):
            self.crm.create_task({"description": "no title"}, "admin-1")

    def test_create_task_defaults(self):
        """Test new tasks start pending and record the creating admin"""
        task = self.crm.create_task({"title": "Call customer", "status": "completed"}, "admin-1")

        assert task.status == TaskStatus.PENDING
        assert task.priority == TaskPriority.MEDIUM
        assert task.assigned_by == "admin-1"

    def test_tasks_sorted_by_priority_then_due_date(self):
        """Test urgent work comes first and earlier due dates win ties"""
        self.crm.create_task({"title": "low", "priority": "low"}, "admin-1")
        self.crm.create_task({"title": "high-late", "priority": "high",
                              "due_date": "2030-06-01T00:00:00+00:00"}, "admin-1")
        self.crm.create_task({"title": "high-early", "priority": "high",
                              "due_date": "2030-01-01T00:00:00+00:00"}, "admin-1")
        self.crm.create_task({"title": "urgent", "priority": "urgent"}, "admin-1")

        titles = [t.title for t in self.crm.get_all_tasks()['items']]

        assert titles == ["urgent", "high-early", "high-late", "low"]

    def test_completing_sets_timestamp(self):
        """Test moving to completed stamps completed_at"""
        task = self.crm.create_task({"title": "Review KYC"}, "admin-1")

        updated = self.crm.update_task(task.id, {"status": "completed"}, "admin-1")

        assert updated.status == TaskStatus.COMPLETED
        assert updated.completed_at is not None
        assert self.crm.get_all_tasks(status=TaskStatus.COMPLETED)['pagination']['total'] == 1

    def test_delete_missing_task(self):
        """Test deleting an unknown task fails"""
        with pytest.raises(ValueError, match="Task not found"):
            self.crm.delete_task("missing", "admin-1")


class TestCrmLeads:
    """Test lead tracking and conversion"""

    def setup_method(self):
        self.system = make_system()
        self.crm = self.system.crm

    def test_create_requires_name_and_email(self):
        """Test leads need contact details"""
        with pytest.raises(ValueError, match="Name and email are required"):
            self.crm.create_lead({"name": "Prospect"}, "admin-1")

    def test_convert_lead(self):
        """Test conversion links the lead to a customer"""
        lead = self.crm.create_lead({"name": "Prospect", "email": "p@example.com"}, "admin-1")
        user = make_user(self.system)

        converted = self.crm.convert_lead(lead.id, user.id, "admin-1")

        assert converted.status == LeadStatus.CONVERTED
        assert converted.converted_user == user.id
        assert converted.converted_at is not None

    def test_convert_to_unknown_user(self):
        """Test conversion requires an existing customer"""
        lead = self.crm.create_lead({"name": "Prospect", "email": "p@example.com"}, "admin-1")

        with pytest.raises(ValueError, match="User not found"):
            self.crm.convert_lead(lead.id, "missing", "admin-1")

    def test_stats(self):
        """Test summary counters"""
        task = self.crm.create_task({"title": "A"}, "admin-1")
        self.crm.create_task({"title": "B"}, "admin-1")
        self.crm.update_task(task.id, {"status": "completed"}, "admin-1")
        lead = self.crm.create_lead({"name": "P", "email": "p@example.com"}, "admin-1")
        self.crm.create_lead({"name": "Q", "email": "q@example.com"}, "admin-1")
        self.crm.update_lead(lead.id, {"status": "contacted"}, "admin-1")

        stats = self.crm.get_stats()

        assert stats == {
            "totalTasks": 2,
            "pendingTasks": 1,
            "completedTasks": 1,
            "totalLeads": 2,
            "newLeads": 1,
            "convertedLeads": 0,
        }
