# Overview: Closed enumeration of institution departments.

from __future__ import annotations

import enum

from .errors import ValidationError


# Sheet department tag for sheets produced by consolidation. Not a department.
CONSOLIDATED_TAG = "consolidated"


class Department(enum.Enum):
    AUTOMOBILE_ENGINEERING = "automobile_engineering"
    CIVIL_ENGINEERING = "civil_engineering"
    MECHANICAL_ENGINEERING = "mechanical_engineering"
    ELECTRICAL_AND_ELECTRONICS_ENGINEERING = "electrical_and_electronics_engineering"
    ELECTRONICS_AND_COMMUNICATION_ENGINEERING = "electronics_and_communication_engineering"
    VLSI = "vlsi"
    ADVANCED_COMMUNICATION_TECHNOLOGY = "advanced_communication_technology"
    ARTIFICIAL_INTELLIGENCE_AND_DATA_SCIENCE = "artificial_intelligence_and_data_science"
    COMPUTER_SCIENCE_AND_ENGINEERING = "computer_science_and_engineering"
    ARTIFICIAL_INTELLIGENCE_AND_MACHINE_LEARNING = "artificial_intelligence_and_machine_learning"
    CSE_CYBERSECURITY = "cse_cybersecurity"
    INFORMATION_TECHNOLOGY = "information_technology"
    COMPUTER_APPLICATION_MCA = "computer_application_mca"
    SCIENCE_AND_HUMANITIES = "science_and_humanities"
    ME_APPLIED_ELECTRONICS = "me_applied_electronics"
    ME_CAD_CAM = "me_cad_cam"
    ME_COMPUTER_SCIENCE_AND_ENGINEER = "me_computer_science_and_engineer"
    ME_COMMUNICATION_SYSTEMS = "me_communication_systems"
    ME_STRUCTURAL_ENGINEER = "me_structural_engineer"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value) -> "Department":
        """Accept a Department, its value, or its label. Raises ValidationError."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("department is required")
        key = value.strip()
        for dept in cls:
            if key == dept.value or key.lower() == dept.label.lower():
                return dept
        raise ValidationError(f"Unknown department '{key}'")

    @classmethod
    def choices(cls) -> list[dict]:
        return [{"value": d.value, "label": d.label} for d in cls]


_LABELS = {
    Department.AUTOMOBILE_ENGINEERING: "Automobile Engineering",
    Department.CIVIL_ENGINEERING: "Civil Engineering",
    Department.MECHANICAL_ENGINEERING: "Mechanical Engineering",
    Department.ELECTRICAL_AND_ELECTRONICS_ENGINEERING: "Electrical and Electronics Engineering",
    Department.ELECTRONICS_AND_COMMUNICATION_ENGINEERING: "Electronics and Communication Engineering",
    Department.VLSI: "VLSI",
    Department.ADVANCED_COMMUNICATION_TECHNOLOGY: "Advanced Communication Technology",
    Department.ARTIFICIAL_INTELLIGENCE_AND_DATA_SCIENCE: "Artificial Intelligence and Data Science",
    Department.COMPUTER_SCIENCE_AND_ENGINEERING: "Computer Science and Engineering",
    Department.ARTIFICIAL_INTELLIGENCE_AND_MACHINE_LEARNING: "Artificial Intelligence and Machine Learning",
    Department.CSE_CYBERSECURITY: "CSE (Cybersecurity)",
    Department.INFORMATION_TECHNOLOGY: "Information Technology",
    Department.COMPUTER_APPLICATION_MCA: "Computer Application (MCA)",
    Department.SCIENCE_AND_HUMANITIES: "Science and Humanities",
    Department.ME_APPLIED_ELECTRONICS: "M.E. Applied Electronics",
    Department.ME_CAD_CAM: "M.E. CAD / CAM",
    Department.ME_COMPUTER_SCIENCE_AND_ENGINEER: "M.E. Computer Science and Engineer",
    Department.ME_COMMUNICATION_SYSTEMS: "M.E. Communication Systems",
    Department.ME_STRUCTURAL_ENGINEER: "M.E. Structural Engineer",
}


def parse_sheet_department(value) -> str:
    """Sheet departments are a Department value or the consolidated tag."""
    if isinstance(value, str) and value.strip() == CONSOLIDATED_TAG:
        return CONSOLIDATED_TAG
    return Department.parse(value).value
