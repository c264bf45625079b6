ADMIN = "admin"
DIRECTOR = "dr"
CENTER_CHIEF = "cdc"
COORDINATOR = "drif"
FACILITATOR = "animateur"
PARTICIPANT = "participant"

# Kinds stored as RoleCapability rows; the participant role comes from the
# user's Participant record instead.
CAPABILITY_KINDS = [ADMIN, DIRECTOR, CENTER_CHIEF, COORDINATOR, FACILITATOR]

# Order used to pick a default acting role for users holding several.
ROLE_PRIORITY = [
    ADMIN,
    COORDINATOR,
    CENTER_CHIEF,
    DIRECTOR,
    FACILITATOR,
    PARTICIPANT,
]

ROLE_LABELS = {
    ADMIN: "Administrator",
    DIRECTOR: "Regional director",
    CENTER_CHIEF: "Center chief",
    COORDINATOR: "Training coordinator",
    FACILITATOR: "Facilitator",
    PARTICIPANT: "Participant",
}

APPROVER_ROLES = (CENTER_CHIEF, COORDINATOR)
FORMATION_MANAGER_ROLES = (ADMIN, CENTER_CHIEF, COORDINATOR)

DRAFT = "draft"
WRITTEN = "written"
VALIDATED = "validated"
FORMATION_STATUSES = [DRAFT, WRITTEN, VALIDATED]

REQUIRED_FORMATION_FIELDS = [
    "title",
    "description",
    "start_date",
    "end_date",
    "facilitator_id",
    "city_id",
    "site_id",
    "branche_id",
]
