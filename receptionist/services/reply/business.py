"""Business profiles used to ground replies."""
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel

from receptionist.core.exceptions import GenerationError


class SpecialNotes(BaseModel):
    """Free-form facts callers often ask about."""

    halal: bool = False
    parking: Optional[str] = None
    vegetarian_options: bool = False


class BusinessProfile(BaseModel):
    """Business knowledge for one receptionist."""

    business_id: str
    business_name: str
    phone: str
    location: str
    hours: Dict[str, str] = {}
    services: List[str] = []
    specialties: List[str] = []
    menu: Dict[str, List[str]] = {}
    delivery_areas: List[str] = []
    delivery_fee: Optional[str] = None
    payment_methods: List[str] = []
    special_notes: SpecialNotes = SpecialNotes()

    def get_summary_text(self) -> str:
        """Plain-text profile for prompting an LLM."""
        lines = [
            f"Business: {self.business_name}",
            f"Phone: {self.phone}",
            f"Location: {self.location}",
        ]
        if self.hours:
            hours = ", ".join(f"{day.capitalize()} {h}" for day, h in self.hours.items())
            lines.append(f"Hours: {hours}")
        if self.specialties:
            lines.append(f"Specialties: {', '.join(self.specialties)}")
        for category, items in self.menu.items():
            lines.append(f"{category.capitalize()}: {', '.join(items)}")
        if self.delivery_areas:
            fee = f" (fee: {self.delivery_fee})" if self.delivery_fee else ""
            lines.append(f"Delivery areas: {', '.join(self.delivery_areas)}{fee}")
        if self.payment_methods:
            lines.append(f"Payment: {', '.join(self.payment_methods)}")
        return "\n".join(lines)


class BusinessRepository:
    """Loads business profiles from YAML files named `<business_id>.yaml`."""

    def __init__(self, data_dir: Optional[str] = None):
        if data_dir is None:
            data_dir = Path(__file__).parent / "data"
        self.data_dir = Path(data_dir)
        self._profiles: Dict[str, BusinessProfile] = {}

    def get_profile(self, business_id: str) -> BusinessProfile:
        """Get a business profile, loading and caching it on first use.

        Raises:
            GenerationError: if no data exists for the business id
        """
        profile = self._profiles.get(business_id)
        if profile is not None:
            return profile

        profile_file = self.data_dir / f"{business_id}.yaml"
        if not profile_file.exists():
            raise GenerationError(f"No data found for business_id: {business_id}")

        with open(profile_file, "r") as f:
            data = yaml.safe_load(f) or {}
        data.setdefault("business_id", business_id)
        profile = BusinessProfile(**data)
        self._profiles[business_id] = profile
        return profile
