# aws/asg_controller.py

import logging

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from aws.aws_config import AWS_CONNECT_TIMEOUT_SECONDS, AWS_READ_TIMEOUT_SECONDS, AWS_REGION
from decision.errors import TransportError


def _client_config():
    # Retries are handled by the decision engine, not botocore
    return Config(
        connect_timeout=AWS_CONNECT_TIMEOUT_SECONDS,
        read_timeout=AWS_READ_TIMEOUT_SECONDS,
        retries={"max_attempts": 1, "mode": "standard"},
    )


class AutoScalingGroupBackend:
    """ComputeBackend for an AWS Auto Scaling Group (capacity = DesiredCapacity)."""

    def __init__(self, region=AWS_REGION, autoscaling=None, ec2=None):
        self.autoscaling = autoscaling or boto3.client("autoscaling", region_name=region, config=_client_config())
        self.ec2 = ec2 or boto3.client("ec2", region_name=region, config=_client_config())

    def _describe_group(self, name):
        try:
            res = self.autoscaling.describe_auto_scaling_groups(AutoScalingGroupNames=[name])
        except (BotoCoreError, ClientError) as e:
            logging.error(f"Failed to describe Auto Scaling Group {name}: {e}")
            raise TransportError(str(e)) from e

        groups = res.get("AutoScalingGroups", [])
        if not groups:
            raise TransportError(f"Auto Scaling Group {name} not found")
        return groups[0]

    def get_capacity(self, identity):
        """Get the current desired capacity of the group."""
        group = self._describe_group(identity)
        capacity = int(group["DesiredCapacity"])
        logging.info(f"Current capacity of {identity}: {capacity}")
        return capacity

    def set_capacity(self, identity, target):
        """
        Set desired capacity. Safe to retry: setting the same value twice is a no-op.

        The group's own cooldown is bypassed; cooldown is enforced by the engine.
        """
        try:
            self.autoscaling.set_desired_capacity(
                AutoScalingGroupName=identity,
                DesiredCapacity=int(target),
                HonorCooldown=False,
            )
        except (BotoCoreError, ClientError) as e:
            logging.error(f"Failed to set desired capacity of {identity} to {target}: {e}")
            raise TransportError(str(e)) from e

        logging.info(f"✅ Desired capacity of {identity} set to {target}")

    def describe_vm_size(self, identity):
        """Instance type of the first instance in the group, or 'unknown' for an empty group."""
        group = self._describe_group(identity)
        instances = group.get("Instances", [])
        if not instances:
            return "unknown"

        if instances[0].get("InstanceType"):
            return instances[0]["InstanceType"]

        try:
            res = self.ec2.describe_instances(InstanceIds=[instances[0]["InstanceId"]])
            instance = res["Reservations"][0]["Instances"][0]
            return instance["InstanceType"]
        except (BotoCoreError, ClientError, KeyError, IndexError) as e:
            logging.error(f"Failed to get instance type for {identity}: {e}")
            raise TransportError(str(e)) from e
