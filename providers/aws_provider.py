"""
providers/aws_provider.py

Concrete implementation of CloudProvider for AWS EC2 (the GPU backend).
Uses boto3 exclusively, no AWS CLI dependency.

Create order:
  Image (explicit or searched) → shared SSH security group → run_instances

AWS resources touched:
  AMI              → looked up, never created
  Security Group   → "wolkenlauf-ssh-access", shared by every VM in the account
  Elastic IP       → released on delete if one is bound to the instance
  EC2 Instance     → one per create_vm(), optionally a one-time spot request
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from config import AWSConfig
from .base import (
    CanonicalStatus,
    CloudProvider,
    LogFn,
    ProviderName,
    VMRequest,
    VMResponse,
    VMStatus,
    utcnow,
)
from .cloud_init import aws_user_data, generate_password
from .errors import (
    ClientInputError,
    ConfigurationError,
    NotFoundError,
    ProviderError,
    ResourceResolutionError,
    VendorRejection,
)

logger = logging.getLogger("wolkenlauf.aws")

SECURITY_GROUP_NAME = "wolkenlauf-ssh-access"
SSH_PORT = 22

CPU_INSTANCE_PREFIXES = ("t3.", "t2.", "m5.", "c5.")

GPU_INSTANCE_TYPES = frozenset({
    "g4dn.xlarge", "g4dn.2xlarge", "g4dn.4xlarge", "g4dn.8xlarge",
    "g4dn.12xlarge", "g4dn.16xlarge", "g4dn.metal",
    "p3.2xlarge", "p3.8xlarge", "p3.16xlarge", "p3dn.24xlarge",
    "p4d.24xlarge",
    "g5.xlarge", "g5.2xlarge", "g5.4xlarge", "g5.8xlarge",
    "g5.12xlarge", "g5.16xlarge", "g5.24xlarge", "g5.48xlarge",
})


@dataclass(frozen=True)
class ImageSearch:
    """One describe_images query: name glob + expected owner."""
    pattern: str
    owner: str


DEEP_LEARNING_SEARCHES = (
    ImageSearch("Deep Learning AMI (Ubuntu 20.04)*", "amazon"),
    ImageSearch("Deep Learning AMI (Ubuntu 18.04)*", "amazon"),
    ImageSearch("Deep Learning AMI GPU*", "amazon"),
)
UBUNTU_SEARCH = ImageSearch("ubuntu/images/hvm-ssd/ubuntu-focal-20.04-amd64-server-*", "099720109477")
AMAZON_LINUX_SEARCH = ImageSearch("amzn2-ami-hvm-*-x86_64-gp2", "amazon")

# EC2 instance-state-name → canonical. "shutting-down" is what EC2 reports
# while terminating.
_STATE_MAP: Dict[str, CanonicalStatus] = {
    "pending":       CanonicalStatus.PENDING,
    "running":       CanonicalStatus.RUNNING,
    "stopping":      CanonicalStatus.STOPPED,
    "stopped":       CanonicalStatus.STOPPED,
    "shutting-down": CanonicalStatus.TERMINATED,
    "terminating":   CanonicalStatus.TERMINATED,
    "terminated":    CanonicalStatus.TERMINATED,
}

_NOT_FOUND_CODES = {"InvalidInstanceID.NotFound"}
_MALFORMED_CODES = {"InvalidInstanceID.Malformed"}


def map_aws_state(state: Optional[str]) -> CanonicalStatus:
    """Total mapping from an EC2 state name to CanonicalStatus."""
    status = _STATE_MAP.get((state or "").lower())
    if status is None:
        logger.warning("Unknown EC2 state '%s', defaulting to 'pending'", state)
        return CanonicalStatus.PENDING
    return status


def ssh_username_for_image(image_name: str) -> str:
    """Ubuntu AMIs log in as 'ubuntu', Amazon Linux (and the rest) as 'ec2-user'."""
    return "ubuntu" if "ubuntu" in (image_name or "").lower() else "ec2-user"


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def _allows_ssh_from_anywhere(group: dict) -> bool:
    """True when the group already admits tcp/22 from 0.0.0.0/0."""
    for permission in group.get("IpPermissions", []):
        protocol = permission.get("IpProtocol")
        if protocol == "-1":
            covers_ssh = True
        elif protocol == "tcp":
            covers_ssh = permission.get("FromPort", -1) <= SSH_PORT <= permission.get("ToPort", -1)
        else:
            covers_ssh = False
        if covers_ssh and any(r.get("CidrIp") == "0.0.0.0/0" for r in permission.get("IpRanges", [])):
            return True
    return False


class AWSProvider(CloudProvider):
    """
    AWS implementation of CloudProvider.
    Authenticates with explicit keys when configured, otherwise through the
    boto3 default credential chain (env vars, profile, instance role).

    Client initialisation is lazy: boto3 is only touched when a cloud
    operation is actually invoked, so the server can start without AWS
    credentials and still serve Hetzner.
    """

    name = ProviderName.AWS

    def __init__(self, config: Optional[AWSConfig] = None, client=None):
        self._config = config or AWSConfig()
        self._ec2 = client

    def _ensure_client(self):
        if self._ec2 is None:
            self._ec2 = boto3.client(
                "ec2",
                region_name=self._config.region,
                aws_access_key_id=self._config.access_key_id,
                aws_secret_access_key=self._config.secret_access_key,
            )
        return self._ec2

    def _rejected(self, action: str, exc: Exception) -> ProviderError:
        if isinstance(exc, NoCredentialsError):
            return ConfigurationError(
                f"{action} failed: no AWS credentials configured "
                "(set AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY or a profile)",
                provider=self.name.value,
            )
        return VendorRejection(f"{action} failed: {exc}", provider=self.name.value)

    # ------------------------------------------------------------------
    # supports_instance_type
    # ------------------------------------------------------------------

    def supports_instance_type(self, instance_type: str) -> bool:
        return instance_type.startswith(CPU_INSTANCE_PREFIXES) or instance_type in GPU_INSTANCE_TYPES

    # ------------------------------------------------------------------
    # create_vm
    # ------------------------------------------------------------------

    def create_vm(self, request: VMRequest, log: LogFn = logger.info) -> VMResponse:
        """
        Launches one EC2 instance.

        Args:
            request: VMRequest already validated by the Dispatcher.
            log:     Callable for progress output. Defaults to the module logger.
                     The CLI passes a Rich handler here.
        """
        ec2 = self._ensure_client()
        password = generate_password()

        image_id, image_name = self._resolve_image(request, log)
        log(f"🖼️  Using AMI {image_id} ({image_name}) for region {request.region}")

        group_id = self._ensure_ssh_security_group(log)
        username = ssh_username_for_image(image_name)

        run_params = {
            "ImageId": image_id,
            "InstanceType": request.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "SecurityGroupIds": [group_id],
            # botocore base64-encodes UserData for run_instances itself
            "UserData": aws_user_data(username, password, request.instance_type),
            "TagSpecifications": [
                {
                    "ResourceType": "instance",
                    "Tags": [
                        {"Key": "Name",      "Value": request.name},
                        {"Key": "Provider",  "Value": "wolkenlauf"},
                        {"Key": "UserID",    "Value": request.user_id},
                        {"Key": "CreatedAt", "Value": utcnow().isoformat()},
                    ],
                }
            ],
        }
        if request.use_spot_instance:
            run_params["InstanceMarketOptions"] = {
                "MarketType": "spot",
                "SpotOptions": {"SpotInstanceType": "one-time"},
            }
            log("💸 Requesting a one-time spot instance.")

        try:
            result = ec2.run_instances(**run_params)
        except (ClientError, BotoCoreError) as exc:
            raise self._rejected("run_instances", exc) from exc

        instance = result["Instances"][0]
        log(f"✅ EC2 instance {instance['InstanceId']} launched ({request.instance_type}).")

        return VMResponse(
            id=instance["InstanceId"],
            name=request.name,
            provider=self.name.value,
            instance_type=request.instance_type,
            region=request.region,
            status=map_aws_state(instance.get("State", {}).get("Name", "pending")),
            public_ip=instance.get("PublicIpAddress"),
            ssh_username=username,
            ssh_password=password,
            image=image_id,
        )

    # ------------------------------------------------------------------
    # delete_vm
    # ------------------------------------------------------------------

    def delete_vm(self, vm_id: str, log: LogFn = logger.info) -> None:
        """
        Releases the instance's Elastic IP (best effort), then terminates it.
        Termination happens whether or not the address release worked.
        """
        ec2 = self._ensure_client()
        instance = self._describe_instance(vm_id)

        public_ip = instance.get("PublicIpAddress")
        if public_ip:
            self._release_elastic_ip(public_ip, log)

        try:
            ec2.terminate_instances(InstanceIds=[vm_id])
        except (ClientError, BotoCoreError) as exc:
            raise self._rejected("terminate_instances", exc) from exc
        log(f"🔥 EC2 instance {vm_id} terminating.")

    def _release_elastic_ip(self, public_ip: str, log: LogFn) -> None:
        ec2 = self._ensure_client()
        try:
            addresses = ec2.describe_addresses(PublicIps=[public_ip]).get("Addresses", [])
        except (ClientError, BotoCoreError) as exc:
            # Not an Elastic IP (auto-assigned public address) or lookup denied.
            logger.debug("No Elastic IP record for %s: %s", public_ip, exc)
            return

        allocation_id = addresses[0].get("AllocationId") if addresses else None
        if not allocation_id:
            return
        try:
            ec2.release_address(AllocationId=allocation_id)
            log(f"✅ Released Elastic IP {public_ip} ({allocation_id}).")
        except (ClientError, BotoCoreError) as exc:
            logger.warning("Could not release Elastic IP %s: %s", allocation_id, exc)

    # ------------------------------------------------------------------
    # get_vm_status
    # ------------------------------------------------------------------

    def get_vm_status(self, vm_id: str) -> VMStatus:
        instance = self._describe_instance(vm_id)
        raw_state = instance.get("State", {}).get("Name")
        return VMStatus(
            id=vm_id,
            status=map_aws_state(raw_state),
            public_ip=instance.get("PublicIpAddress"),
        )

    def _describe_instance(self, vm_id: str) -> dict:
        ec2 = self._ensure_client()
        try:
            result = ec2.describe_instances(InstanceIds=[vm_id])
        except ClientError as exc:
            code = _error_code(exc)
            if code in _NOT_FOUND_CODES:
                raise NotFoundError(f"instance '{vm_id}' not found", provider=self.name.value) from exc
            if code in _MALFORMED_CODES:
                raise ClientInputError(f"malformed instance id '{vm_id}'", provider=self.name.value) from exc
            raise self._rejected("describe_instances", exc) from exc
        except BotoCoreError as exc:
            raise self._rejected("describe_instances", exc) from exc

        for reservation in result.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                return instance
        raise NotFoundError(f"instance '{vm_id}' not found", provider=self.name.value)

    # ------------------------------------------------------------------
    # check_credentials
    # ------------------------------------------------------------------

    def check_credentials(self) -> str:
        ec2 = self._ensure_client()
        try:
            ec2.describe_images(
                Owners=[AMAZON_LINUX_SEARCH.owner],
                Filters=[
                    {"Name": "name",  "Values": [AMAZON_LINUX_SEARCH.pattern]},
                    {"Name": "state", "Values": ["available"]},
                ],
                MaxResults=5,
            )
            ec2.describe_instances(MaxResults=5)
        except (ClientError, BotoCoreError) as exc:
            raise self._rejected("credential check", exc) from exc
        return f"DescribeImages and DescribeInstances allowed in {self._config.region}"

    # ------------------------------------------------------------------
    # private helpers
    # ------------------------------------------------------------------

    def _general_purpose_searches(self) -> Tuple[ImageSearch, ImageSearch]:
        if self._config.image_preference == "amazon-linux":
            return AMAZON_LINUX_SEARCH, UBUNTU_SEARCH
        return UBUNTU_SEARCH, AMAZON_LINUX_SEARCH

    def _resolve_image(self, request: VMRequest, log: LogFn) -> Tuple[str, str]:
        """Returns (image_id, image_name)."""
        if request.image:
            return self._describe_explicit_image(request.image)

        searches: List[ImageSearch] = []
        if request.instance_type in GPU_INSTANCE_TYPES:
            searches.extend(DEEP_LEARNING_SEARCHES)
        searches.extend(self._general_purpose_searches())
        return self._first_image(searches, log)

    def _describe_explicit_image(self, image_id: str) -> Tuple[str, str]:
        ec2 = self._ensure_client()
        try:
            images = ec2.describe_images(ImageIds=[image_id]).get("Images", [])
        except ClientError as exc:
            if _error_code(exc).startswith("InvalidAMIID"):
                raise ResourceResolutionError("image", [image_id], provider=self.name.value) from exc
            raise self._rejected("describe_images", exc) from exc
        except BotoCoreError as exc:
            raise self._rejected("describe_images", exc) from exc
        if not images:
            raise ResourceResolutionError("image", [image_id], provider=self.name.value)
        return images[0]["ImageId"], images[0].get("Name", "")

    def _first_image(self, searches: Sequence[ImageSearch], log: LogFn) -> Tuple[str, str]:
        """Try each search in order; a failed search only moves on to the next."""
        for search in searches:
            try:
                image = self._search_image(search)
            except NoCredentialsError as exc:
                raise self._rejected("describe_images", exc) from exc
            except (ClientError, BotoCoreError) as exc:
                log(f"⚠️  AMI search '{search.pattern}' failed: {exc}")
                continue
            if image is not None:
                return image["ImageId"], image.get("Name", "")
            log(f"⚠️  No AMI matches '{search.pattern}', trying next pattern.")
        raise ResourceResolutionError(
            "image", [s.pattern for s in searches], provider=self.name.value
        )

    def _search_image(self, search: ImageSearch) -> Optional[dict]:
        """Newest available image for one pattern, or None."""
        ec2 = self._ensure_client()
        images = ec2.describe_images(
            Owners=[search.owner],
            Filters=[
                {"Name": "name",  "Values": [search.pattern]},
                {"Name": "state", "Values": ["available"]},
            ],
        ).get("Images", [])
        if not images:
            return None
        # CreationDate is ISO-8601, so string order is time order.
        return max(images, key=lambda image: image.get("CreationDate", ""))

    def _ensure_ssh_security_group(self, log: LogFn) -> str:
        """
        Get-or-create the shared SSH security group, with its port-22 rule.

        The rule is checked on every call, not only after a create: a group
        left behind by a failed authorize is repaired on the next create.
        Concurrent first-time creates may race; the loser reuses the winner's group.
        """
        group = self._find_security_group()
        if group is None:
            group = self._create_security_group(log)

        group_id = group["GroupId"]
        if not _allows_ssh_from_anywhere(group):
            self._authorize_ssh(group_id)
            log(f"🔒 Opened SSH on security group {group_id}.")
        return group_id

    def _create_security_group(self, log: LogFn) -> dict:
        ec2 = self._ensure_client()
        try:
            vpcs = ec2.describe_vpcs(Filters=[{"Name": "is-default", "Values": ["true"]}])["Vpcs"]
        except (ClientError, BotoCoreError) as exc:
            raise self._rejected("describe_vpcs", exc) from exc
        if not vpcs:
            raise ResourceResolutionError("default VPC", ["is-default=true"], provider=self.name.value)

        try:
            created = ec2.create_security_group(
                GroupName=SECURITY_GROUP_NAME,
                Description="Wolkenlauf SSH access security group",
                VpcId=vpcs[0]["VpcId"],
                TagSpecifications=[
                    {
                        "ResourceType": "security-group",
                        "Tags": [
                            {"Key": "Name",      "Value": SECURITY_GROUP_NAME},
                            {"Key": "ManagedBy", "Value": "wolkenlauf"},
                        ],
                    }
                ],
            )
        except ClientError as exc:
            if _error_code(exc) == "InvalidGroup.Duplicate":
                group = self._find_security_group()
                if group is not None:
                    return group
            raise self._rejected("create_security_group", exc) from exc
        except BotoCoreError as exc:
            raise self._rejected("create_security_group", exc) from exc

        log(f"🔒 Created security group {created['GroupId']}.")
        return {"GroupId": created["GroupId"], "IpPermissions": []}

    def _authorize_ssh(self, group_id: str) -> None:
        ec2 = self._ensure_client()
        try:
            ec2.authorize_security_group_ingress(
                GroupId=group_id,
                IpPermissions=[
                    {
                        "IpProtocol": "tcp",
                        "FromPort": SSH_PORT,
                        "ToPort": SSH_PORT,
                        "IpRanges": [
                            {"CidrIp": "0.0.0.0/0", "Description": "SSH access from anywhere"}
                        ],
                    }
                ],
            )
        except ClientError as exc:
            if _error_code(exc) != "InvalidPermission.Duplicate":
                raise self._rejected("authorize_security_group_ingress", exc) from exc
        except BotoCoreError as exc:
            raise self._rejected("authorize_security_group_ingress", exc) from exc

    def _find_security_group(self) -> Optional[dict]:
        ec2 = self._ensure_client()
        try:
            groups = ec2.describe_security_groups(
                Filters=[{"Name": "group-name", "Values": [SECURITY_GROUP_NAME]}]
            )["SecurityGroups"]
        except (ClientError, BotoCoreError) as exc:
            raise self._rejected("describe_security_groups", exc) from exc
        return groups[0] if groups else None
