import io
import re
from typing import Any, Dict, List

import pandas as pd

from mesclasses.models import StudentRecord

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")


def generate_roster_excel(class_name: str, students: List[StudentRecord]) -> bytes:
    buffer = io.BytesIO()
    roster_df = pd.DataFrame(
        [
            {
                "Code Massar": student.massar_id,
                "Nom": student.last_name,
                "Prénom": student.first_name,
                "Date de naissance": student.birth_date,
                "Classe": student.class_name,
            }
            for student in sorted(students, key=lambda s: s.last_name.lower())
        ],
        columns=["Code Massar", "Nom", "Prénom", "Date de naissance", "Classe"],
    )
    sheet_name = (INVALID_SHEET_CHARS.sub("-", class_name) or "Classe")[:31]
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        roster_df.to_excel(writer, sheet_name=sheet_name, index=False)
    buffer.seek(0)
    return buffer.getvalue()


def generate_dashboard_excel(stats: Dict[str, Any]) -> bytes:
    buffer = io.BytesIO()
    summary_df = pd.DataFrame([
        {
            "Total Élèves": stats.get("total_students", 0),
            "Séances ce mois": stats.get("sessions_this_month", 0),
            "Taux de présence (%)": stats.get("avg_attendance", 0),
            "Classes": stats.get("class_count", 0),
        }
    ])
    cycles_df = pd.DataFrame(
        [
            {"Cycle": item.get("name"), "Séances": item.get("session_count"), "Taux (%)": item.get("rate")}
            for item in stats.get("cycle_stats", [])
        ],
        columns=["Cycle", "Séances", "Taux (%)"],
    )
    risk_df = pd.DataFrame(
        [
            {
                "Code Massar": student.get("massar_id"),
                "Nom": student.get("last_name"),
                "Prénom": student.get("first_name"),
                "Classe": student.get("class_name"),
                "Absences": student.get("absences"),
            }
            for student in stats.get("at_risk_students", [])
        ],
        columns=["Code Massar", "Nom", "Prénom", "Classe", "Absences"],
    )
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        summary_df.to_excel(writer, sheet_name="Résumé", index=False)
        cycles_df.to_excel(writer, sheet_name="Cycles", index=False)
        risk_df.to_excel(writer, sheet_name="À risque", index=False)
    buffer.seek(0)
    return buffer.getvalue()
