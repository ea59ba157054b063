"""SecretStory: offline cache controller and anonymous message submission."""

__version__ = "0.1.0"
