"""
CRM Module

Back-office tasks and sales leads for the support team.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from .activity import ActivityLog, ActorType
from .identifiers import new_id
from .storage import StorageInterface, StorageRecord, encode_value, paginate
from .users import UserManager


class TaskPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


PRIORITY_RANK = {
    TaskPriority.LOW: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.URGENT: 3,
}


class TaskStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LeadStatus(Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    LOST = "lost"


@dataclass
class Task(StorageRecord):
    title: str
    assigned_by: str
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    related_user: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class Lead(StorageRecord):
    name: str
    email: str
    phone: Optional[str] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    assigned_to: Optional[str] = None
    status: LeadStatus = LeadStatus.NEW
    converted_user: Optional[str] = None
    converted_at: Optional[datetime] = None


TASK_FIELDS = ("title", "description", "assigned_to", "related_user", "priority", "status", "due_date")
LEAD_FIELDS = ("name", "email", "phone", "source", "notes", "assigned_to", "status")


def _coerce_task(key: str, value: Any) -> Any:
    if key == "priority":
        return TaskPriority(value)
    if key == "status":
        return TaskStatus(value)
    if key == "due_date" and isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def _task_order(task: Task):
    due = task.due_date.timestamp() if task.due_date else float("inf")
    return (-PRIORITY_RANK[task.priority], due)


class CrmManager:
    """Tasks and leads"""

    tasks_table = "crm_tasks"
    leads_table = "crm_leads"

    def __init__(self, storage: StorageInterface, activity: ActivityLog, users: UserManager):
        self.storage = storage
        self.activity = activity
        self.users = users

    # Tasks

    def get_task(self, task_id: str) -> Optional[Task]:
        data = self.storage.load(self.tasks_table, task_id)
        if data:
            return Task.from_dict(data)
        return None

    def get_all_tasks(self, page: int = 1, limit: int = 20, status: Optional[TaskStatus] = None,
                      priority: Optional[TaskPriority] = None, assigned_to: Optional[str] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {}
        if status:
            filters['status'] = status
        if priority:
            filters['priority'] = priority
        if assigned_to:
            filters['assigned_to'] = assigned_to
        tasks = [Task.from_dict(d) for d in self.storage.find(self.tasks_table, filters)]
        tasks.sort(key=_task_order)
        return paginate(tasks, page, limit)

    def create_task(self, data: Dict[str, Any], admin_id: str) -> Task:
        if not data.get('title'):
            raise ValueError("Title is required")
        values = {k: _coerce_task(k, v) for k, v in data.items()
                  if k in TASK_FIELDS and k != 'status' and v is not None}
        now = datetime.now(timezone.utc)
        task = Task(id=new_id(), created_at=now, updated_at=now, assigned_by=admin_id, **values)
        self.storage.save(self.tasks_table, task.id, task.to_dict())
        self.activity.log(admin_id, ActorType.ADMIN, "create_task", "task", task.id,
                          details=encode_value(values))
        return task

    def update_task(self, task_id: str, data: Dict[str, Any], admin_id: str) -> Task:
        task = self.get_task(task_id)
        if not task:
            raise ValueError("Task not found")
        values = {k: _coerce_task(k, v) for k, v in data.items() if k in TASK_FIELDS and v is not None}
        if values.get('status') == TaskStatus.COMPLETED and task.status != TaskStatus.COMPLETED:
            task.completed_at = datetime.now(timezone.utc)
        for key, value in values.items():
            setattr(task, key, value)
        task.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.tasks_table, task.id, task.to_dict())
        self.activity.log(admin_id, ActorType.ADMIN, "update_task", "task", task.id,
                          details=encode_value(values))
        return task

    def delete_task(self, task_id: str, admin_id: str) -> None:
        if not self.storage.delete(self.tasks_table, task_id):
            raise ValueError("Task not found")
        self.activity.log(admin_id, ActorType.ADMIN, "delete_task", "task", task_id)

    # Leads

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        data = self.storage.load(self.leads_table, lead_id)
        if data:
            return Lead.from_dict(data)
        return None

    def get_all_leads(self, page: int = 1, limit: int = 20, status: Optional[LeadStatus] = None,
                      assigned_to: Optional[str] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {}
        if status:
            filters['status'] = status
        if assigned_to:
            filters['assigned_to'] = assigned_to
        leads = [Lead.from_dict(d) for d in self.storage.find(self.leads_table, filters)]
        leads.sort(key=lambda l: l.created_at, reverse=True)
        return paginate(leads, page, limit)

    def create_lead(self, data: Dict[str, Any], admin_id: str) -> Lead:
        if not data.get('name') or not data.get('email'):
            raise ValueError("Name and email are required")
        values = {k: v for k, v in data.items() if k in LEAD_FIELDS and k != 'status' and v is not None}
        now = datetime.now(timezone.utc)
        lead = Lead(id=new_id(), created_at=now, updated_at=now, **values)
        self.storage.save(self.leads_table, lead.id, lead.to_dict())
        self.activity.log(admin_id, ActorType.ADMIN, "create_lead", "lead", lead.id, details=values)
        return lead

    def update_lead(self, lead_id: str, data: Dict[str, Any], admin_id: str) -> Lead:
        lead = self.get_lead(lead_id)
        if not lead:
            raise ValueError("Lead not found")
        values = {k: (LeadStatus(v) if k == 'status' else v)
                  for k, v in data.items() if k in LEAD_FIELDS and v is not None}
        for key, value in values.items():
            setattr(lead, key, value)
        lead.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.leads_table, lead.id, lead.to_dict())
        self.activity.log(admin_id, ActorType.ADMIN, "update_lead", "lead", lead.id,
                          details=encode_value(values))
        return lead

    def convert_lead(self, lead_id: str, user_id: str, admin_id: str) -> Lead:
        """Mark a lead as converted into an existing customer"""
        lead = self.get_lead(lead_id)
        if not lead:
            raise ValueError("Lead not found")
        user = self.users.require_user(user_id)
        lead.status = LeadStatus.CONVERTED
        lead.converted_user = user.id
        lead.converted_at = datetime.now(timezone.utc)
        lead.updated_at = lead.converted_at
        self.storage.save(self.leads_table, lead.id, lead.to_dict())
        self.activity.log(admin_id, ActorType.ADMIN, "convert_lead", "lead", lead.id, details={"user_id": user.id})
        return lead

    def delete_lead(self, lead_id: str, admin_id: str) -> None:
        if not self.storage.delete(self.leads_table, lead_id):
            raise ValueError("Lead not found")
        self.activity.log(admin_id, ActorType.ADMIN, "delete_lead", "lead", lead_id)

    def get_stats(self) -> Dict[str, int]:
        tasks = self.storage.load_all(self.tasks_table)
        leads = self.storage.load_all(self.leads_table)
        open_statuses = (TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value)
        return {
            "totalTasks": len(tasks),
            "pendingTasks": sum(1 for t in tasks if t['status'] in open_statuses),
            "completedTasks": sum(1 for t in tasks if t['status'] == TaskStatus.COMPLETED.value),
            "totalLeads": len(leads),
            "newLeads": sum(1 for l in leads if l['status'] == LeadStatus.NEW.value),
            "convertedLeads": sum(1 for l in leads if l['status'] == LeadStatus.CONVERTED.value),
        }
