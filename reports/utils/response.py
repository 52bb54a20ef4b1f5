"""
Standardized Response Utilities for Reports

Provides consistent response envelopes across all report endpoints.
"""

import math
from typing import Any, Dict, List, Optional

from rest_framework import status
from rest_framework.response import Response


class ReportResponse:
    """Standard report response builder"""

    @staticmethod
    def success(data: Dict[str, Any], message: Optional[str] = None) -> Response:
        """
        Create successful report response

        Args:
            data: The assembled report result
            message: Optional human-readable message

        Returns:
            DRF Response object with standardized structure
        """
        response_data = {'success': True}
        if message:
            response_data['message'] = message
        response_data['data'] = data
        return Response(response_data, status=status.HTTP_200_OK)

    @staticmethod
    def paginated(results: List[Dict[str, Any]], page: int, limit: int, total: int) -> Response:
        """
        Create paginated list response

        Args:
            results: Current page of results
            page: Current page number (1-based)
            limit: Items per page
            total: Total items available

        Returns:
            DRF Response with pagination info
        """
        return Response({
            'success': True,
            'data': results,
            'pagination': {
                'total': total,
                'page': page,
                'limit': limit,
                'totalPages': math.ceil(total / limit) if limit else 0,
            },
        }, status=status.HTTP_200_OK)
