"""Pytest configuration and fixtures for controller tests."""

import copy

import pytest
from unittest.mock import MagicMock
from kubernetes import client


@pytest.fixture
def mock_cluster_connection():
    """Mock cluster connection for testing."""
    mock_conn = MagicMock()
    mock_conn.core_v1 = MagicMock(spec=client.CoreV1Api)
    mock_conn.custom_objects = MagicMock(spec=client.CustomObjectsApi)
    return mock_conn


@pytest.fixture
def settings():
    """Controller settings that ignore the environment."""
    from cpms_controller import Settings

    return Settings(_env_file=None, retry_min_wait_seconds=0, retry_max_wait_seconds=0)


@pytest.fixture
def aws_provider_spec():
    """Factory for AWS provider payloads."""

    def build(availability_zone="us-east-1a", instance_type="m6i.xlarge"):
        return {
            "apiVersion": "awsproviderconfig.openshift.io/v1beta1",
            "kind": "AWSMachineProviderConfig",
            "ami": {"id": "aws-ami-12345678"},
            "blockDevices": [
                {"ebs": {"encrypted": True, "volumeSize": 120, "volumeType": "gp3"}}
            ],
            "credentialsSecret": {"name": "aws-cloud-credentials"},
            "iamInstanceProfile": {"id": "aws-iam-instance-profile-12345678"},
            "instanceType": instance_type,
            "loadBalancers": [
                {"type": "network", "name": "aws-nlb-int"},
                {"type": "network", "name": "aws-nlb-ext"},
            ],
            "placement": {"region": "us-east-1", "availabilityZone": availability_zone},
            "securityGroups": [
                {"filters": [{"name": "tag:Name", "values": ["aws-security-group-12345678"]}]}
            ],
            "userDataSecret": {"name": "aws-user-data-12345678"},
        }

    return build


@pytest.fixture
def openstack_provider_spec():
    """Factory for OpenStack provider payloads."""

    def build(availability_zone=None, root_volume_zone=None):
        spec = {
            "apiVersion": "openstackproviderconfig.openshift.io/v1alpha1",
            "kind": "OpenstackProviderSpec",
            "cloudName": "openstack",
            "flavor": "ci.m1.xlarge",
            "image": "0bnhphb-b5564-2wmsh-rhcos",
            "networks": [
                {
                    "subnets": [
                        {
                            "filter": {
                                "name": "0bnhphb-b5564-2wmsh-nodes",
                                "tags": "openshiftClusterID=0bnhphb-b5564-2wmsh",
                            }
                        }
                    ]
                }
            ],
            "securityGroups": [{"name": "0bnhphb-b5564-2wmsh-master"}],
            "userDataSecret": {"name": "master-user-data"},
            "trunk": True,
            "tags": ["openshiftClusterID=0bnhphb-b5564-2wmsh"],
            "serverMetadata": {
                "Name": "0bnhphb-b5564-2wmsh-master",
                "openshiftClusterID": "0bnhphb-b5564-2wmsh",
            },
            "serverGroupName": "0bnhphb-b5564-2wmsh-master",
            "rootVolume": {"diskSize": 100, "volumeType": "performance"},
        }
        if availability_zone:
            spec["availabilityZone"] = availability_zone
        if root_volume_zone:
            spec["rootVolume"]["availabilityZone"] = root_volume_zone
        return spec

    return build


@pytest.fixture
def make_machine():
    """Factory for Machine custom objects."""

    def build(name, provider_spec, node=None, labels=None, status=None):
        machine_status = copy.deepcopy(status) if status else {}
        if node:
            machine_status["nodeRef"] = {"kind": "Node", "name": node}
        return {
            "apiVersion": "machine.openshift.io/v1beta1",
            "kind": "Machine",
            "metadata": {
                "name": name,
                "namespace": "openshift-machine-api",
                "labels": labels or {"machine.openshift.io/cluster-api-machine-role": "master"},
            },
            "spec": {"providerSpec": {"value": copy.deepcopy(provider_spec)}},
            "status": machine_status,
        }

    return build


@pytest.fixture
def make_node():
    """Factory for control plane nodes."""

    def build(name, ready=True):
        return client.V1Node(
            metadata=client.V1ObjectMeta(
                name=name, labels={"node-role.kubernetes.io/master": ""}
            ),
            status=client.V1NodeStatus(
                conditions=[
                    client.V1NodeCondition(type="Ready", status="True" if ready else "False")
                ]
            ),
        )

    return build


@pytest.fixture
def make_cpms(aws_provider_spec):
    """Factory for ControlPlaneMachineSet custom objects."""

    def build(
        replicas=3,
        provider_spec=None,
        failure_domains=None,
        status=None,
        state="Active",
        strategy="RollingUpdate",
        generation=1,
        resource_version="1000",
    ):
        return {
            "apiVersion": "machine.openshift.io/v1",
            "kind": "ControlPlaneMachineSet",
            "metadata": {
                "name": "cluster",
                "namespace": "openshift-machine-api",
                "generation": generation,
                "resourceVersion": resource_version,
            },
            "spec": {
                "replicas": replicas,
                "state": state,
                "strategy": {"type": strategy},
                "selector": {
                    "matchLabels": {
                        "machine.openshift.io/cluster-api-machine-role": "master",
                    }
                },
                "template": {
                    "machineType": "machines_v1beta1_machine_openshift_io",
                    "machines_v1beta1_machine_openshift_io": {
                        "failureDomains": failure_domains,
                        "metadata": {
                            "labels": {
                                "machine.openshift.io/cluster-api-cluster": "cluster-abc12",
                                "machine.openshift.io/cluster-api-machine-role": "master",
                            }
                        },
                        "spec": {
                            "providerSpec": {
                                "value": provider_spec or aws_provider_spec(),
                            }
                        },
                    },
                },
            },
            "status": status or {},
        }

    return build


@pytest.fixture
def aws_failure_domains():
    """AWS failureDomains block with three zones."""
    return {
        "platform": "AWS",
        "aws": [
            {"placement": {"availabilityZone": "us-east-1a"}},
            {"placement": {"availabilityZone": "us-east-1b"}},
            {"placement": {"availabilityZone": "us-east-1c"}},
        ],
    }
