# aws/aws_config.py

import os

AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

# Auto Scaling Group whose desired capacity is managed
ASG_NAME = os.getenv("ASG_NAME", "")

AWS_CONNECT_TIMEOUT_SECONDS = float(os.getenv("AWS_CONNECT_TIMEOUT_SECONDS", "10"))
AWS_READ_TIMEOUT_SECONDS = float(os.getenv("AWS_READ_TIMEOUT_SECONDS", "30"))
