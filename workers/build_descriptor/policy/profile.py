"""
Profile descriptor for build_descriptor.

Frozen dataclass with the Flutter tool's defaults and the verdict
thresholds.  Not user-selectable in v0; use ``DescriptorProfile.v0()``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True)
class DescriptorProfile:
    """build_descriptor v0 support profile."""

    profile_id: str

    # Values behind `flutter.*` references when local.properties is silent
    flutter_defaults: Dict[str, object] = field(default_factory=dict)

    # Google Play target-API floor for new uploads
    min_store_target_sdk: int = 34

    google_services_plugin: str = "com.google.gms.google-services"
    google_services_file: str = "google-services.json"

    @classmethod
    def v0(cls) -> DescriptorProfile:
        """The single supported profile: Flutter Android app module."""
        return cls(
            profile_id="android-app-flutter",
            flutter_defaults={
                "compileSdkVersion": 35,
                "targetSdkVersion": 35,
                "minSdkVersion": 21,
                "ndkVersion": "27.0.12077973",
                "versionCode": 1,
                "versionName": "1.0",
            },
        )
