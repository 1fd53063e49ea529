"""
providers/cloud_init.py

Boot-time user-data for new VMs, plus the two helpers that feed it:

  generate_password()      — one-time SSH password, CSPRNG, [A-Za-z0-9]
  sanitize_server_name()   — Hetzner-safe hostname (RFC 1123 label)
  aws_user_data()          — lean toolset, username depends on the AMI
  hetzner_user_data()      — root login + dev/ML toolchain (CPU builds)

Every script does the same three things first: set the password for the
login user, force-enable SSH password authentication, restart sshd.
"""

import re
import secrets
import string

PASSWORD_ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
PASSWORD_LENGTH = 16

MAX_SERVER_NAME_LENGTH = 63
DEFAULT_SERVER_NAME = "wolkenlauf-vm"

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]")
_REPEATED_HYPHENS = re.compile(r"-+")


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Random password drawn from the 62-character alphabet using `secrets`."""
    if length < 1:
        raise ValueError("password length must be positive")
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def sanitize_server_name(name: str) -> str:
    """
    Clean a free-form VM name into a valid Hetzner server name.

        "My_Test VM!!"  → "my-test-vm"
        "---"           → "wolkenlauf-vm"
    """
    name = _INVALID_NAME_CHARS.sub("-", (name or "").lower())
    name = _REPEATED_HYPHENS.sub("-", name).strip("-")
    if len(name) > MAX_SERVER_NAME_LENGTH:
        name = name[:MAX_SERVER_NAME_LENGTH].rstrip("-")
    return name or DEFAULT_SERVER_NAME


# ---------------------------------------------------------------------------
# Scripts
# ---------------------------------------------------------------------------

# sshd uses the first value it reads, and cloud images ship a drop-in that
# disables passwords, so ours must sort before it.
_SSH_PASSWORD_BLOCK = """\
echo '{username}:{password}' | chpasswd
sed -i 's/^#\\?PasswordAuthentication .*/PasswordAuthentication yes/' /etc/ssh/sshd_config
if [ -d /etc/ssh/sshd_config.d ]; then
    echo 'PasswordAuthentication yes' > /etc/ssh/sshd_config.d/00-wolkenlauf.conf
fi
systemctl restart sshd || systemctl restart ssh
"""

_AWS_TEMPLATE = """\
#!/bin/bash
# Set up SSH access for {username} user
{ssh_block}
# Install basic tools (detect package manager)
if command -v yum &> /dev/null; then
    # Amazon Linux 2
    yum update -y
    yum install -y htop git curl wget python3 python3-pip
elif command -v apt-get &> /dev/null; then
    # Ubuntu
    apt-get update
    apt-get install -y htop git curl wget python3 python3-pip
fi

# GPU instances: report what the driver sees
if command -v nvidia-smi &> /dev/null; then
    echo "GPU detected: $(nvidia-smi --query-gpu=name --format=csv,noheader,nounits)"
fi

cat > /etc/motd << 'EOF'
Welcome to your Wolkenlauf VM!

Instance Type: {instance_type}
Provider: AWS
SSH Username: {username}

Commands to try:
- htop: System monitoring
- nvidia-smi: GPU status (if GPU instance)
- python3: Python interpreter
EOF

echo "VM setup complete!"
"""

_HETZNER_TEMPLATE = """\
#!/bin/bash
# Set up SSH access
{ssh_block}
# Install basic development tools
export DEBIAN_FRONTEND=noninteractive
apt-get update
apt-get install -y htop git curl wget build-essential python3 python3-pip nodejs npm docker.io
systemctl enable --now docker
usermod -aG docker {username}

# Python ML libraries (CPU builds)
pip3 install torch torchvision torchaudio --index-url https://download.pytorch.org/whl/cpu
pip3 install tensorflow-cpu scikit-learn jupyter matplotlib pandas numpy

cat > /etc/motd << 'EOF'
Welcome to your Wolkenlauf VM!

Instance Type: {instance_type}
Provider: Hetzner Cloud

Pre-installed software:
- Python 3 with PyTorch (CPU), TensorFlow (CPU), Jupyter
- Node.js and npm
- Docker
- Git and development tools

Note: This is a CPU-only instance. For GPU workloads, use AWS instances.
EOF

echo "Hetzner VM setup complete!"
"""


def _ssh_block(username: str, password: str) -> str:
    return _SSH_PASSWORD_BLOCK.format(username=username, password=password)


def aws_user_data(username: str, password: str, instance_type: str) -> str:
    return _AWS_TEMPLATE.format(
        username=username,
        ssh_block=_ssh_block(username, password),
        instance_type=instance_type,
    )


def hetzner_user_data(username: str, password: str, instance_type: str) -> str:
    return _HETZNER_TEMPLATE.format(
        username=username,
        ssh_block=_ssh_block(username, password),
        instance_type=instance_type,
    )
