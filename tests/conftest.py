"""
Test configuration and fixtures for flowbridge tests.
"""
import pytest
from fastapi.testclient import TestClient

from flowbridge.backend.main import app
from flowbridge.core import (
    Assignment,
    AssignPayload,
    Attribute,
    ConditionPayload,
    DataType,
    Entity,
    FlowEdge,
    FlowGraph,
    FlowNode,
    LogicAction,
)


SAMPLE_DOCUMENT = """<?xml version="1.0" encoding="utf-8"?>
<ClipboardData>
  <Entity Name="Customer" Description="People who buy" IsPublic="true" IsStatic="false">
    <Attributes>
      <EntityAttribute Name="Id" Type="rt:LongInteger" IsMandatory="true" IsIdentifier="true" />
      <EntityAttribute Name="Name" Type="Text" Length="100" IsMandatory="true" IsIdentifier="false" />
      <EntityAttribute Name="Phone" Type="Phone Number" Length="20" />
      <EntityAttribute Name="Age" Type="Integer" Length="10" />
    </Attributes>
  </Entity>
  <Module Name="Sales">
    <Entities>
      <Entity Name="Order" IsPublic="True">
        <Attributes>
          <EntityAttribute Name="Id" Type="LongInteger" IsIdentifier="true" />
          <EntityAttribute Name="CustomerId" Type="LongInteger" />
          <EntityAttribute Name="Total" Type="Currency" />
          <EntityAttribute Name="PlacedOn" Type="DateTime" />
        </Attributes>
      </Entity>
    </Entities>
  </Module>
  <ServerAction Name="PlaceOrder" Description="Creates an order" IsPublic="true" IsFunction="false">
    <InputParameter Name="CustomerId" Type="LongInteger" IsMandatory="true" />
    <InputParameter Name="Amount" Type="Decimal" />
    <OutputParameter Name="OrderId" Type="LongInteger" />
    <Flow>
      <Start Name="Start" />
      <If Name="IsBig">
        <Condition>Amount &gt; 100</Condition>
      </If>
      <Assign Name="SetTotals">
        <Assignment Variable="Total" Value="Amount" />
        <Assignment Variable="Discount" Value="0.1" />
      </Assign>
      <ExecuteServerAction Name="CreateOrder">
        <Action Name="Order_Create" />
      </ExecuteServerAction>
      <End Name="End" />
      <Link Source="Start" Target="IsBig" />
      <Link Source="IsBig" Target="SetTotals" Label="True" />
      <Link Source="IsBig" Target="CreateOrder" Label="False" />
      <Link Source="SetTotals" Target="CreateOrder" />
      <Link Source="CreateOrder" Target="End" />
    </Flow>
  </ServerAction>
  <ClientAction Name="ShowGreeting">
    <Message Name="Greet" Message="Hello" />
    <Start Name="Begin" />
    <Link Source="Begin" Target="Greet" />
  </ClientAction>
</ClipboardData>
"""


@pytest.fixture
def sample_document():
    """A clipboard document with two entities and two actions."""
    return SAMPLE_DOCUMENT


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def customer_entity():
    return Entity(
        name="Customer",
        attributes=[
            Attribute(name="Id", data_type=DataType.LONG_INTEGER, is_identifier=True),
        ],
    )


@pytest.fixture
def order_entity():
    return Entity(
        name="Order",
        attributes=[
            Attribute(name="Id", data_type=DataType.LONG_INTEGER, is_identifier=True),
            Attribute(name="CustomerId", data_type=DataType.LONG_INTEGER),
        ],
    )


@pytest.fixture
def branching_action():
    """Start -> If -> (True: Assign, False: End), Assign -> End."""
    return LogicAction(
        name="Check",
        flow=FlowGraph(
            nodes=[
                FlowNode(id="start", type="Start", label="Start"),
                FlowNode(id="check", type="If", label="Check",
                         payload=ConditionPayload(condition="x > 1")),
                FlowNode(id="assign", type="Assign", label="Assign",
                         payload=AssignPayload(assignments=[Assignment(variable="x", value="1")])),
                FlowNode(id="end", type="End", label="End"),
            ],
            edges=[
                FlowEdge(source="start", target="check"),
                FlowEdge(source="check", target="assign", label="True"),
                FlowEdge(source="check", target="end", label="False"),
                FlowEdge(source="assign", target="end"),
            ],
        ),
    )
