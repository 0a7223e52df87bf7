"""Order API views.

Exposes ``OrderWorkflowService`` via HTTP using a DRF ViewSet.  The
caller's ``Actor`` is resolved from the authenticated request; workflow
exceptions are translated into HTTP status codes and the standard error
body.  The view never swallows generic exceptions.
"""

from __future__ import annotations

from typing import Callable, Optional, Type

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import serializers as drf_serializers
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import error_response
from modules.core.identity import ActorRole, actor_from_request
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, ShippingAddressDTO
from modules.orders.exceptions import (
    OrderNotFound,
    OrderWorkflowError,
    OTPMismatch,
    TransitionValidationError,
    WrongRole,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    AssignDeliverySerializer,
    AssignDesignerSerializer,
    CancelOrderSerializer,
    CreateOrderSerializer,
    DeliverSerializer,
    LocationSerializer,
    NotesSerializer,
    OrderListSerializer,
    OrderSerializer,
    ProgressSerializer,
)
from modules.orders.services import OrderWorkflowService

# Most specific class first; anything else is a 409 precondition failure.
_ERROR_STATUS = (
    (OrderNotFound, status.HTTP_404_NOT_FOUND),
    (WrongRole, status.HTTP_403_FORBIDDEN),
    (TransitionValidationError, status.HTTP_400_BAD_REQUEST),
    (OTPMismatch, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


def workflow_error_response(exc: OrderWorkflowError) -> Response:
    http_status = next(
        (code for cls, code in _ERROR_STATUS if isinstance(exc, cls)),
        status.HTTP_409_CONFLICT,
    )
    return error_response(exc.kind, exc.message, http_status)


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderWorkflowService`` with an injected repository (DIP).
    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    filterset_class = OrderFilter
    search_fields = ["order_number"]
    ordering_fields = ["created_at", "total_amount", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderWorkflowService(order_repository=OrderDjangoRepository())

    def get_throttles(self) -> list[BaseThrottle]:
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve", "tracking", "statistics"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = "order_transition"
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Create (checkout hand-off)
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header: a
        repeated key returns the original order.
        """
        actor = actor_from_request(request)
        if actor.role != ActorRole.CUSTOMER:
            return error_response(
                WrongRole.kind,
                "Only customers can place orders.",
                status.HTTP_403_FORBIDDEN,
            )

        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)
        data = create_serializer.validated_data

        dto = CreateOrderDTO(
            customer_id=actor.actor_id,
            items=[CreateOrderItemDTO(**item) for item in data["items"]],
            shipping_address=ShippingAddressDTO(**data["shipping_address"]),
            payment_status=data["payment_status"],
            notes=data.get("notes", ""),
            idempotency_key=request.headers.get("Idempotency-Key"),
        )
        order = self._service.create_order(dto)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve / Tracking / Statistics
    # ------------------------------------------------------------------

    def get_queryset(self):
        return self._service.list_orders_for(actor_from_request(self.request))

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Scoped to the caller (own orders, own assignments, everything
        for managers) and filtered by ``OrderFilter``.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        actor = actor_from_request(request)
        try:
            order = self._service.get_order_for(pk, actor)
        except OrderWorkflowError as exc:
            return workflow_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["get"])
    def tracking(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/tracking/"""
        actor = actor_from_request(request)
        try:
            view = self._service.get_tracking(pk, actor)
        except OrderWorkflowError as exc:
            return workflow_error_response(exc)
        return Response(view.model_dump(mode="json"))

    @action(detail=False, methods=["get"])
    def statistics(self, request: Request) -> Response:
        """GET /api/v1/orders/statistics/

        Counts over the same orders the caller can list.
        """
        stats = self._service.order_statistics(actor_from_request(request))
        return Response(stats.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(
        self,
        request: Request,
        pk: Optional[str],
        operation: Callable[..., Order],
        input_serializer: Optional[Type[drf_serializers.Serializer]] = None,
    ) -> Response:
        actor = actor_from_request(request)
        params: dict = {}
        if input_serializer is not None:
            serializer = input_serializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            params = dict(serializer.validated_data)
        try:
            order = operation(pk, actor, **params)
        except OrderWorkflowError as exc:
            return workflow_error_response(exc)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def receive(self, request: Request, pk: str | None = None) -> Response:
        return self._transition(request, pk, self._service.receive_order)

    @action(detail=True, methods=["post"], url_path="assign-designer")
    def assign_designer(self, request: Request, pk: str | None = None) -> Response:
        return self._transition(
            request, pk, self._service.assign_designer, AssignDesignerSerializer
        )

    @action(detail=True, methods=["post"], url_path="assign-delivery")
    def assign_delivery(self, request: Request, pk: str | None = None) -> Response:
        return self._transition(
            request, pk, self._service.assign_delivery, AssignDeliverySerializer
        )

    @action(detail=True, methods=["post"])
    def accept(self, request: Request, pk: str | None = None) -> Response:
        return self._transition(request, pk, self._service.accept_order)

    @action(detail=True, methods=["post"], url_path="start-production")
    def start_production(self, request: Request, pk: str | None = None) -> Response:
        return self._transition(request, pk, self._service.start_production)

    @action(detail=True, methods=["post"])
    def progress(self, request: Request, pk: str | None = None) -> Response:
        return self._transition(
            request, pk, self._service.update_progress, ProgressSerializer
        )

    @action(detail=True, methods=["post"])
    def complete(self, request: Request, pk: str | None = None) -> Response:
        return self._transition(
            request, pk, self._service.complete_production, NotesSerializer
        )

    @action(detail=True, methods=["post"])
    def pickup(self, request: Request, pk: str | None = None) -> Response:
        return self._transition(request, pk, self._service.pick_up)

    @action(detail=True, methods=["post"], url_path="in-transit")
    def in_transit(self, request: Request, pk: str | None = None) -> Response:
        return self._transition(
            request, pk, self._service.mark_in_transit, LocationSerializer
        )

    @action(detail=True, methods=["post"], url_path="out-for-delivery")
    def out_for_delivery(self, request: Request, pk: str | None = None) -> Response:
        return self._transition(
            request, pk, self._service.mark_out_for_delivery, LocationSerializer
        )

    @action(detail=True, methods=["post"])
    def deliver(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/deliver/

        A wrong OTP returns 422 and leaves the order out for delivery.
        """
        return self._transition(request, pk, self._service.deliver, DeliverSerializer)

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/ (customer, pending orders only)."""
        return self._transition(
            request, pk, self._service.cancel_order, CancelOrderSerializer
        )
