__app_name__ = "VoxPaste"
__version__ = "0.1.0"
