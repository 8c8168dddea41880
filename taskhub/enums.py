import enum
# =========================================================
# ENUMS
# =========================================================
class Role(str, enum.Enum):
    super_admin = "SUPER_ADMIN"
    general_manager = "GENERAL_MANAGER"
    admin = "ADMIN"
    program_manager = "PROGRAM_MANAGER"
    project_coordinator = "PROJECT_COORDINATOR"
    hr = "HR"
    finance = "FINANCE"
    procurement = "PROCUREMENT"
    storekeeper = "STOREKEEPER"
    me_officer = "ME"
    field_officer = "FIELD_OFFICER"
    accountant = "ACCOUNTANT"
    user = "USER"

class Capability(str, enum.Enum):
    manage_users = "canManageUsers"
    assign_roles = "canAssignRoles"
    create_tasks = "canCreateTasks"
    assign_tasks = "canAssignTasks"
    view_all_tasks = "canViewAllTasks"
    manage_projects = "canManageProjects"
    manage_content = "canManageContent"
    view_analytics = "canViewAnalytics"
    manage_finance = "canManageFinance"
    manage_hr = "canManageHR"
    manage_procurement = "canManageProcurement"
    manage_inventory = "canManageInventory"
    send_messages = "canSendMessages"
    receive_messages = "canReceiveMessages"
    view_reports = "canViewReports"

class TaskStatus(str, enum.Enum):
    pending = "PENDING"
    in_progress = "IN_PROGRESS"
    submitted = "SUBMITTED"
    completed = "COMPLETED"
    cancelled = "CANCELLED"

class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"

# Sorting by priority uses this rank, not the string value
PRIORITY_RANK = {
    TaskPriority.low: 1,
    TaskPriority.medium: 2,
    TaskPriority.high: 3,
    TaskPriority.urgent: 4,
}

class FieldType(str, enum.Enum):
    text = "text"
    textarea = "textarea"
    number = "number"
    email = "email"
    date = "date"
    select = "select"
    checkbox = "checkbox"
    radio = "radio"
    file = "file"

class ActivityAction(str, enum.Enum):
    created = "CREATED"
    assigned = "ASSIGNED"
    viewed = "VIEWED"
    in_progress = "IN_PROGRESS"
    submitted = "SUBMITTED"
    reviewed = "REVIEWED"
    completed = "COMPLETED"
    cancelled = "CANCELLED"

class TaskSortField(str, enum.Enum):
    created_at = "createdAt"
    updated_at = "updatedAt"
    due_date = "dueDate"
    priority = "priority"
    title = "title"

class SortOrder(str, enum.Enum):
    asc = "asc"
    desc = "desc"

class ExportFormat(str, enum.Enum):
    json = "json"
    csv = "csv"
