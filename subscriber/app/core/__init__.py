SERVICE_NAME = "subscriber"
