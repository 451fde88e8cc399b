"""
Active Directory attribute catalog and mapping presets.

The catalog is what mapping previews check attribute names against.
Presets are ready-made header mappings for the common spreadsheet layouts
(French school exports use `prenom` / `nom` / `classe` columns).
"""

# =============================================================================
# TRANSFORMATIONS
# =============================================================================

# Names accepted after the colon of a template token
VALID_TRANSFORMATIONS = ("uppercase", "lowercase", "capitalize", "trim", "first")

TRANSFORMATION_HELP = {
    "uppercase": ("Upper-case the value", "%nom:uppercase%", "DUPONT"),
    "lowercase": ("Lower-case the value", "%prenom:lowercase%", "jean"),
    "capitalize": ("First letter upper, rest lower", "%prenom:capitalize%", "Jean"),
    "trim": ("Strip surrounding whitespace", "%classe:trim%", "6A"),
    "first": ("First character only", "%prenom:first%", "J"),
}


# =============================================================================
# USER ATTRIBUTES
# =============================================================================

# (name, description, required)
AD_USER_ATTRIBUTES = [
    ("sAMAccountName", "Logon name", True),
    ("userPrincipalName", "UPN (email format)", True),
    ("displayName", "Display name", True),
    ("mail", "Email address", False),
    ("givenName", "First name", False),
    ("sn", "Last name", False),
    ("cn", "Common name", False),
    ("description", "Description", False),
    ("title", "Job title", False),
    ("department", "Department", False),
    ("division", "Division / class", False),
    ("company", "Company / school", False),
    ("manager", "Manager", False),
    ("telephoneNumber", "Telephone", False),
    ("mobile", "Mobile", False),
    ("facsimileTelephoneNumber", "Fax", False),
    ("pager", "Pager", False),
    ("physicalDeliveryOfficeName", "Office", False),
    ("streetAddress", "Street address", False),
    ("l", "City", False),
    ("st", "State / region", False),
    ("postalCode", "Postal code", False),
    ("co", "Country", False),
    ("homeDirectory", "Home directory", False),
    ("homeDrive", "Home drive", False),
    ("profilePath", "Profile path", False),
    ("scriptPath", "Logon script", False),
    ("initials", "Initials", False),
    ("personalTitle", "Personal title", False),
    ("extensionAttribute1", "Extension attribute 1", False),
    ("extensionAttribute2", "Extension attribute 2", False),
    ("extensionAttribute3", "Extension attribute 3", False),
    ("extensionAttribute4", "Extension attribute 4", False),
    ("extensionAttribute5", "Extension attribute 5", False),
]

REQUIRED_USER_ATTRIBUTES = [name for name, _, required in AD_USER_ATTRIBUTES if required]


# =============================================================================
# PRESETS
# =============================================================================

MAPPING_PRESETS: dict[str, dict[str, str]] = {
    "default": {
        "sAMAccountName": "%prenom:lowercase%.%nom:lowercase%",
        "givenName": "%prenom%",
        "sn": "%nom:uppercase%",
        "mail": "%prenom:lowercase%.%nom:lowercase%@entreprise.com",
        "userPrincipalName": "%prenom:lowercase%.%nom:lowercase%@entreprise.com",
        "displayName": "%prenom% %nom:uppercase%",
        "cn": "%prenom% %nom%",
    },
    "school": {
        "sAMAccountName": "%sAMAccountName%",
        "userPrincipalName": "%prenom:lowercase%.%nom:lowercase%@lycee.fr",
        "mail": "%prenom:lowercase%.%nom:lowercase%@lycee.fr",
        "givenName": "%prenom%",
        "sn": "%nom:uppercase%",
        "cn": "%prenom% %nom%",
        "displayName": "%prenom% %nom:uppercase%",
        "division": "%classe%",
        "company": "Lycée",
        "description": "Élève de la classe de %classe%",
        "department": "Eleves / %classe%",
        "physicalDeliveryOfficeName": "%classe%",
    },
    "enterprise": {
        "sAMAccountName": "%username%",
        "userPrincipalName": "%username%@company.com",
        "mail": "%email%",
        "givenName": "%firstname%",
        "sn": "%lastname%",
        "cn": "%firstname% %lastname%",
        "displayName": "%firstname% %lastname%",
        "title": "%jobtitle%",
        "department": "%department%",
        "company": "My Company",
    },
}
