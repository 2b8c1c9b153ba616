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
import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional

from constants import CANVAS_PLATFORM
from utility.exceptions import ConfigurationError, ConfigurationErrorReason

LTICC = 'http://www.imsglobal.org/xsd/imslticc_v1p0'
BLTI = 'http://www.imsglobal.org/xsd/imsbasiclti_v1p0'
LTICM = 'http://www.imsglobal.org/xsd/imslticm_v1p0'
LTICP = 'http://www.imsglobal.org/xsd/imslticp_v1p0'
XSI = 'http://www.w3.org/2001/XMLSchema-instance'

ET.register_namespace('', LTICC)
ET.register_namespace('blti', BLTI)
ET.register_namespace('lticm', LTICM)
ET.register_namespace('xsi', XSI)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


class LaunchPrivacy(str, enum.Enum):
    USER_PROFILE = 'public'
    NAME_ONLY = 'name_only'
    ANONYMOUS = 'anonymous'


class Option(str, enum.Enum):
    EDITOR = 'editor'
    LINK_SELECTION = 'link_selection'
    HOMEWORK_SUBMISSION = 'homework_submission'
    COURSE_NAVIGATION = 'course_navigation'
    ACCOUNT_NAVIGATION = 'account_navigation'
    USER_NAVIGATION = 'user_navigation'


def _qname(namespace: str, tag: str) -> str:
    return f"{{{namespace}}}{tag}"


class Generator:
    """Builds the LTI configuration XML (cartridge_basiclti_link) for a tool

    With only a name, id and launch URL the document describes a single
    course navigation placement linking to the launch URL with the tool name
    as its text.
    """

    def __init__(self, name: str, tool_id: str, launch_url: str,
                 description: Optional[str] = None, icon_url: Optional[str] = None,
                 launch_privacy: Optional[str] = None, domain: Optional[str] = None):
        self.options: Dict[Option, Dict[str, Any]] = {}
        self.set_name(name)
        self.set_id(tool_id)
        self.set_launch_url(launch_url)
        self.set_description(description)
        self.set_icon_url(icon_url)
        self.set_launch_privacy(launch_privacy)
        self.set_domain(domain)

    def set_name(self, name: str):
        if not name:
            raise ConfigurationError(
                "The configuration must specify a non-empty name for the Tool Provider.",
                ConfigurationErrorReason.INVALID_TOOL_PROVIDER
            )
        self.name = str(name)

    def set_id(self, tool_id: str):
        if not tool_id:
            raise ConfigurationError(
                "The configuration must specify a non-empty (and globally unique) ID for the Tool Provider.",
                ConfigurationErrorReason.INVALID_TOOL_PROVIDER
            )
        self.tool_id = str(tool_id)

    def set_launch_url(self, launch_url: str):
        if not launch_url:
            raise ConfigurationError(
                "The configuration must specify a valid launch URL for the Tool Provider.",
                ConfigurationErrorReason.INVALID_TOOL_PROVIDER
            )
        self.launch_url = str(launch_url)

    def set_description(self, description: Optional[str]):
        self.description = str(description) if description else None

    def set_icon_url(self, icon_url: Optional[str]):
        self.icon_url = str(icon_url) if icon_url else None

    def set_launch_privacy(self, launch_privacy: Optional[str]):
        if not launch_privacy:
            self.launch_privacy = LaunchPrivacy.ANONYMOUS
            return
        try:
            self.launch_privacy = LaunchPrivacy(launch_privacy)
        except ValueError:
            raise ConfigurationError(
                f"Invalid launch privacy setting '{launch_privacy}'",
                ConfigurationErrorReason.INVALID_PRIVACY_LEVEL
            )

    def set_domain(self, domain: Optional[str]):
        self.domain = domain or None

    @staticmethod
    def _option(option) -> Option:
        try:
            return Option(option)
        except ValueError:
            raise ConfigurationError(
                f"Invalid configuration option '{option}'",
                ConfigurationErrorReason.INVALID_OPTION
            )

    def set_option(self, option, properties: Dict[str, Any]):
        self.options[self._option(option)] = dict(properties)

    def set_option_property(self, option, name: str, value: Any):
        self.options.setdefault(self._option(option), {})[name] = value

    def _property(self, parent: ET.Element, name: str, value: Any) -> ET.Element:
        element = ET.SubElement(parent, _qname(LTICM, 'property'), {'name': name})
        element.text = str(value)
        return element

    def _options_element(self, parent: ET.Element, option: Option, properties: Dict[str, Any]) -> ET.Element:
        element = ET.SubElement(parent, _qname(LTICM, 'options'), {'name': option.value})
        properties = dict(properties)
        # link text and URL fall back to the tool name and launch URL
        properties.setdefault('text', self.name)
        properties.setdefault('url', self.launch_url)
        for name, value in properties.items():
            self._property(element, name, value)
        return element

    def build(self) -> ET.Element:
        cartridge = ET.Element(_qname(LTICC, 'cartridge_basiclti_link'))
        # lticp is declared for the schema but not used by any element
        cartridge.set('xmlns:lticp', LTICP)
        cartridge.set(_qname(XSI, 'schemaLocation'), ' '.join(
            f"{namespace} {namespace}.xsd" for namespace in (LTICC, BLTI, LTICM, LTICP)
        ))

        ET.SubElement(cartridge, _qname(BLTI, 'title')).text = self.name
        if self.description:
            ET.SubElement(cartridge, _qname(BLTI, 'description')).text = self.description
        if self.icon_url:
            ET.SubElement(cartridge, _qname(BLTI, 'icon')).text = self.icon_url
        ET.SubElement(cartridge, _qname(BLTI, 'launch_url')).text = self.launch_url

        extensions = ET.SubElement(cartridge, _qname(BLTI, 'extensions'), {'platform': CANVAS_PLATFORM})
        self._property(extensions, 'tool_id', self.tool_id)
        self._property(extensions, 'privacy_level', self.launch_privacy.value)
        if self.domain:
            self._property(extensions, 'domain', self.domain)

        options = self.options or {Option.COURSE_NAVIGATION: {}}
        for option, properties in options.items():
            self._options_element(extensions, option, properties)

        # attribute names are the ones Canvas reads, misspelling included
        ET.SubElement(cartridge, _qname(LTICC, 'cartridge_bundle'), {'identiferref': 'BLT001_Bundle'})
        ET.SubElement(cartridge, _qname(LTICC, 'cartridge_icon'), {'identifierref': 'BLT001_Icon'})
        return cartridge

    def save_xml(self) -> str:
        tree = ET.ElementTree(self.build())
        ET.indent(tree)
        return XML_DECLARATION + ET.tostring(tree.getroot(), encoding='unicode') + '\n'
