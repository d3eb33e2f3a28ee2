from rest_framework.pagination import PageNumberPagination

class UserListPagination(PageNumberPagination):
    page_size = 15
    page_size_query_param = 'page_size' # allows ?page_size=<int>
    max_page_size = 50


class ProfileListPagination(PageNumberPagination):
    page_size = 12
    page_size_query_param = 'page_size'
    max_page_size = 48
