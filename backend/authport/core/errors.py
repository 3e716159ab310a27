class AuthportError(Exception):
    """Base class for every error the export/import subsystem raises."""


class ExportImportError(AuthportError):
    pass


class ConfirmationRequiredError(ExportImportError):
    pass


class ProfileNotFoundError(ExportImportError):
    def __init__(self, profile_name: str):
        super().__init__(f"profile not found: {profile_name}")
        self.profile_name = profile_name


class NoExportableProfilesError(ExportImportError):
    pass


class InsecurePermissionsError(ExportImportError):
    pass


class OutputExistsError(ExportImportError):
    def __init__(self, path):
        super().__init__(f"{path} already exists (use --force to overwrite)")
        self.path = path


class ProfileDirectoryError(AuthportError):
    pass


class InputNotFoundError(ExportImportError):
    pass


class ConfigError(AuthportError):
    pass
