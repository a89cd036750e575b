"""
Small Spring-style Java project used across the test modules.
"""
import os
import textwrap


ORDER_DTO = """\
package com.example.shop.dto;

import java.util.List;
import java.util.Map;
import javax.validation.constraints.NotNull;
import lombok.Data;

@Data
public class OrderDTO {
    private static final long serialVersionUID = 1L;

    @NotNull
    private Long id;
    private CustomerDTO customer;
    private List<OrderItemDTO> items;
    private Map<String, OrderItemDTO> itemsBySku;
    private int quantity;
    private String[] tags;
}
"""

CUSTOMER_DTO = """\
package com.example.shop.dto;

import java.util.List;

public class CustomerDTO {
    private String name;
    private AddressDTO address;
    private List<OrderDTO> orders;
}
"""

ADDRESS_DTO = """\
package com.example.shop.dto;

public class AddressDTO {
    private String city;
    private AddressDTO previous;
}
"""

ORDER_ITEM_DTO = """\
package com.example.shop.dto;

public class OrderItemDTO {
    private String sku;
    private int count;
}
"""

ORDER_ENTITY = """\
package com.example.shop.domain;

import java.math.BigDecimal;
import javax.persistence.Entity;
import javax.persistence.Id;
import javax.persistence.Table;

@Entity
@Table(name = "orders")
public class Order {
    @Id
    private Long id;
    private String status;
    private BigDecimal total;

    public Long getId() {
        return id;
    }
}
"""

ORDER_REPOSITORY = """\
package com.example.shop.repository;

import com.example.shop.domain.Order;
import java.util.List;
import org.springframework.data.jpa.repository.JpaRepository;

public interface OrderRepository extends JpaRepository<Order, Long> {
    List<Order> findByStatus(String status);
}
"""

ORDER_SERVICE = """\
package com.example.shop.service;

import com.example.shop.dto.OrderDTO;

public interface OrderService {
    OrderDTO getOrder(Long id);

    long countOrders();
}
"""

ORDER_SERVICE_IMPL = """\
package com.example.shop.service;

import com.example.shop.domain.Order;
import com.example.shop.dto.OrderDTO;
import com.example.shop.repository.OrderRepository;
import lombok.RequiredArgsConstructor;
import org.slf4j.Logger;
import org.slf4j.LoggerFactory;
import org.springframework.stereotype.Service;

@Service
@RequiredArgsConstructor
public class OrderServiceImpl implements OrderService {
    private static final Logger log = LoggerFactory.getLogger(OrderServiceImpl.class);

    private final OrderRepository orderRepository;
    private final OrderMapper orderMapper;

    @Override
    public OrderDTO getOrder(Long id) {
        log.info("Loading order {}", id);
        Order order = orderRepository.findById(id).orElseThrow();
        return orderMapper.toDto(order);
    }

    @Override
    public long countOrders() {
        log.debug("Counting orders");
        return orderRepository.count();
    }
}
"""

ORDER_MAPPER = """\
package com.example.shop.service;

import com.example.shop.domain.Order;
import com.example.shop.dto.OrderDTO;
import org.springframework.stereotype.Component;

@Component
public class OrderMapper {

    public OrderDTO toDto(Order order) {
        OrderDTO dto = new OrderDTO();
        normalize(order);
        return dto;
    }

    private void normalize(Order order) {
        order.getId();
    }
}
"""

RETRY_SERVICE = """\
package com.example.shop.service;

public class RetryService {

    public void retry(int attempts) {
        if (attempts > 0) {
            retry(attempts - 1);
        }
    }
}
"""

ORDER_CONTROLLER = """\
package com.example.shop.controller;

import com.example.shop.dto.OrderDTO;
import com.example.shop.service.OrderService;
import org.springframework.beans.factory.annotation.Autowired;
import org.springframework.web.bind.annotation.*;

@RestController
@RequestMapping("/orders")
public class OrderController {

    @Autowired
    private OrderService orderService;

    /**
     * Fetch one order.
     */
    @GetMapping("/{id}")
    public OrderDTO getOrder(@PathVariable Long id) {
        OrderDTO result = orderService.getOrder(id);
        return result;
    }

    @GetMapping("/count")
    public long count() {
        return orderService.countOrders();
    }
}
"""

SHOP_FILES = {
    "com/example/shop/dto/OrderDTO.java": ORDER_DTO,
    "com/example/shop/dto/CustomerDTO.java": CUSTOMER_DTO,
    "com/example/shop/dto/AddressDTO.java": ADDRESS_DTO,
    "com/example/shop/dto/OrderItemDTO.java": ORDER_ITEM_DTO,
    "com/example/shop/domain/Order.java": ORDER_ENTITY,
    "com/example/shop/repository/OrderRepository.java": ORDER_REPOSITORY,
    "com/example/shop/service/OrderService.java": ORDER_SERVICE,
    "com/example/shop/service/OrderServiceImpl.java": ORDER_SERVICE_IMPL,
    "com/example/shop/service/OrderMapper.java": ORDER_MAPPER,
    "com/example/shop/service/RetryService.java": RETRY_SERVICE,
    "com/example/shop/controller/OrderController.java": ORDER_CONTROLLER,
}


def write_project(root, files=None, source_dir="src/main/java"):
    """Write ``files`` (relative path -> source) below ``root/source_dir``; return the source dir."""
    base = os.path.join(root, source_dir)
    for relative_path, source in (files if files is not None else SHOP_FILES).items():
        path = os.path.join(base, relative_path)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            f.write(textwrap.dedent(source))
    return base


def source_path(root, relative_path, source_dir="src/main/java"):
    return os.path.realpath(os.path.join(root, source_dir, relative_path))


def line_of(source, needle, occurrence=1):
    """1-based line number of the ``occurrence``-th line containing ``needle``."""
    seen = 0
    for number, line in enumerate(textwrap.dedent(source).splitlines(), start=1):
        if needle in line:
            seen += 1
            if seen == occurrence:
                return number
    raise ValueError(f"{needle!r} not found")
