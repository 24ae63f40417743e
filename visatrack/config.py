"""Configuration utilities.

Central place to load environment driven settings (input files, traveler defaults, email credentials).
Avoids scattering os.getenv calls around the codebase.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env once on module import
load_dotenv()


@dataclass(slots=True)
class Settings:
    stays_file: Path = Path(os.getenv("VISATRACK_STAYS_FILE", "stays.json"))
    rules_file: Path | None = Path(os.environ["VISATRACK_RULES_FILE"]) if os.getenv("VISATRACK_RULES_FILE") else None
    nationality: str | None = os.getenv("VISATRACK_NATIONALITY")
    reference_date: str | None = os.getenv("VISATRACK_REFERENCE_DATE")
    passport_expiry: str | None = os.getenv("VISATRACK_PASSPORT_EXPIRY")
    output_html: Path = Path(os.getenv("OUTPUT_HTML", "visa_status.html"))
    src_mail: str | None = os.getenv("SRC_MAIL")
    src_pwd: str | None = os.getenv("SRC_PWD")
    dst_mail: str | None = os.getenv("DST_MAIL")

    def email_configured(self) -> bool:
        return all([self.src_mail, self.src_pwd, self.dst_mail])


settings = Settings()
