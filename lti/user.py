#
# Copyright 2025 EDT&Partners
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

import enum
from typing import Any, Dict, List, Mapping, Optional
from pydantic import BaseModel, Field

from constants import CANVAS_SETTINGS_PREFIX

ROLE_URN_PREFIX = 'urn:lti:role:ims/lis/'
ADMIN_ROLES = (
    ROLE_URN_PREFIX + 'Administrator',
    'urn:lti:sysrole:ims/lis/SysAdmin',
    'urn:lti:sysrole:ims/lis/Administrator',
    'urn:lti:instrole:ims/lis/Administrator',
)
STAFF_ROLES = (
    ROLE_URN_PREFIX + 'Instructor',
    ROLE_URN_PREFIX + 'ContentDeveloper',
    ROLE_URN_PREFIX + 'TeachingAssistant',
)
LEARNER_ROLES = (
    ROLE_URN_PREFIX + 'Learner',
)


class Role(str, enum.Enum):
    ADMIN = 'admin'
    STAFF = 'staff'
    LEARNER = 'learner'


class Permission(str, enum.Enum):
    VIEW = 'view'
    EDIT = 'edit'
    CONFIGURE = 'configure'


# admin inherits the staff permissions, learners only view
ROLE_PERMISSIONS = {
    Role.ADMIN: {Permission.CONFIGURE, Permission.EDIT},
    Role.STAFF: {Permission.EDIT},
    Role.LEARNER: {Permission.VIEW},
}


def normalize_role(role: str) -> str:
    role = role.strip()
    if not role.startswith('urn:'):
        role = ROLE_URN_PREFIX + role
    return role


def parse_roles(roles: Optional[str]) -> List[str]:
    if not roles:
        return []
    return [normalize_role(role) for role in roles.split(',') if role.strip()]


def extract_canvas_settings(settings: Mapping[str, Any]) -> Dict[str, Any]:
    """Canvas custom settings with the `custom_canvas_` prefix stripped"""
    return {
        key[len(CANVAS_SETTINGS_PREFIX):]: value
        for key, value in settings.items()
        if key.startswith(CANVAS_SETTINGS_PREFIX)
    }


class LtiUser(BaseModel):
    """The user asserted by a launch request"""
    user_id: Optional[str] = None
    name_full: Optional[str] = None
    name_given: Optional[str] = None
    name_family: Optional[str] = None
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=list)

    @classmethod
    def from_launch(cls, params: Mapping[str, Any]) -> "LtiUser":
        return cls(
            user_id=params.get('user_id'),
            name_full=params.get('lis_person_name_full'),
            name_given=params.get('lis_person_name_given'),
            name_family=params.get('lis_person_name_family'),
            email=params.get('lis_person_contact_email_primary'),
            roles=parse_roles(params.get('roles')),
        )

    def has_role(self, role: str) -> bool:
        return normalize_role(role) in self.roles

    def is_admin(self) -> bool:
        return any(role in self.roles for role in ADMIN_ROLES)

    def is_staff(self) -> bool:
        return any(role in self.roles for role in STAFF_ROLES)

    def is_learner(self) -> bool:
        return any(role in self.roles for role in LEARNER_ROLES)


class CanvasUser(LtiUser):
    """LTI user augmented with the Canvas custom settings of the launch"""
    canvas: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_user(cls, user: LtiUser, settings: Mapping[str, Any]) -> "CanvasUser":
        return cls(**user.model_dump(exclude={'canvas'}), canvas=extract_canvas_settings(settings))

    @property
    def role(self) -> Optional[Role]:
        if self.is_admin():
            return Role.ADMIN
        elif self.is_staff():
            return Role.STAFF
        elif self.is_learner():
            return Role.LEARNER
        return None

    def allows(self, permission: Permission) -> bool:
        role = self.role
        if role is None:
            return False
        return Permission(permission) in ROLE_PERMISSIONS[role]
